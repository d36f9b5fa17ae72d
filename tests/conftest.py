"""
Pytest configuration and fixtures.
"""

import asyncio
import os
from collections.abc import AsyncGenerator
from io import BytesIO

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "testing"
os.environ["DEBUG"] = "true"
os.environ["DATABASE_ENABLED"] = "false"
os.environ.pop("DATABASE_URL", None)

from core.config import Settings  # noqa: E402
from core.exceptions import AdapterError  # noqa: E402
from database import build_session_factory, create_tables  # noqa: E402
from services.context import create_storage_context  # noqa: E402
from services.storage.base import StorageAdapter  # noqa: E402
from services.storage.types import (  # noqa: E402
    BackendName,
    TransformOptions,
    UploadedBlob,
    UploadOptions,
)


# ============ Helpers ============


def make_png(width: int = 64, height: int = 48) -> bytes:
    """Small valid PNG."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


# ============ Fake storage backend ============


class FakeAdapter(StorageAdapter):
    """
    In-memory StorageAdapter.

    ``available`` controls the health probe (an unavailable backend also
    refuses uploads); ``fail_with`` makes uploads raise; ``delay`` makes
    uploads slow (for timeout tests).
    """

    def __init__(
        self,
        backend: BackendName,
        available: bool = True,
        fail_with: str | None = None,
        delay: float = 0,
        delete_result: bool = True,
    ):
        super().__init__()
        self._backend = backend
        self.available = available
        self.fail_with = fail_with
        self.delay = delay
        self.delete_result = delete_result
        self.uploads: list[tuple[str, UploadOptions]] = []
        self.deleted: list[str] = []
        self.availability_checks = 0
        self.closed = False

    @property
    def name(self) -> BackendName:
        return self._backend

    @property
    def is_configured(self) -> bool:
        return True

    async def upload(self, data, file_name, options=None) -> UploadedBlob:
        options = options or UploadOptions()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with:
            raise AdapterError(self.fail_with, backend=self._backend)
        if not self.available:
            raise AdapterError(f"{self._backend} unreachable", backend=self._backend)

        self.uploads.append((file_name, options))
        object_id = f"{options.folder}/{file_name}"
        url = f"https://{self._backend.value}.example.com/{object_id}"
        return UploadedBlob(
            url=url,
            backend_object_id=object_id,
            variants={
                "thumbnail": f"{url}?w=150",
                "small": f"{url}?w=300",
                "medium": f"{url}?w=600",
                "large": f"{url}?w=1200",
                "original": url,
            },
            width=800,
            height=600,
        )

    async def delete(self, backend_object_id: str) -> bool:
        self.deleted.append(backend_object_id)
        return self.delete_result

    def get_optimized_url(self, url: str, options: TransformOptions | None = None) -> str:
        options = options or TransformOptions()
        return f"{url}?transform=w{options.width}-h{options.height}-f{options.format}"

    async def _check_available(self) -> bool:
        self.availability_checks += 1
        return self.available

    async def close(self) -> None:
        self.closed = True


# ============ Settings ============


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's .env file."""
    return Settings(
        _env_file=None,
        environment="testing",
        database_enabled=False,
        adapter_timeout_seconds=1.0,
    )


# ============ Database Fixtures ============


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def image_selects(engine) -> list[str]:
    """Records every SELECT issued against image_metadata."""
    statements: list[str] = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        normalized = statement.strip().upper()
        if normalized.startswith("SELECT") and "IMAGE_METADATA" in normalized:
            statements.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    yield statements
    event.remove(engine.sync_engine, "before_cursor_execute", before_cursor_execute)


# ============ Service Fixtures ============


@pytest.fixture
def fake_adapters() -> dict[BackendName, FakeAdapter]:
    return {backend: FakeAdapter(backend) for backend in BackendName}


@pytest.fixture
async def storage_context(test_settings, session_factory, fake_adapters):
    """Full service graph over SQLite and fake backends."""
    context = create_storage_context(
        test_settings,
        session_factory=session_factory,
        adapters=fake_adapters,
    )
    yield context
    await context.close()


# ============ App Fixtures ============


@pytest.fixture
def app(storage_context):
    """FastAPI app wired to the test storage context."""
    from api.main import create_app

    app = create_app()
    app.state.storage = storage_context
    return app


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Asynchronous test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def png_bytes():
    """Factory for small valid PNG payloads."""
    return make_png
