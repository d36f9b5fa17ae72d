"""
Storage adapter abstract base class.

This module defines the contract every storage backend must implement.
The router and storage service only ever talk to this interface.
"""

import logging
import time
from abc import ABC, abstractmethod
from io import BytesIO

import httpx
from PIL import Image, UnidentifiedImageError

from .types import BackendName, TransformOptions, UploadedBlob, UploadOptions, VariantTier

logger = logging.getLogger(__name__)


def probe_dimensions(data: bytes) -> tuple[int | None, int | None]:
    """
    Read width/height from image bytes without decoding pixels.

    Returns (None, None) if the bytes are not a recognizable image.
    """
    try:
        with Image.open(BytesIO(data)) as image:
            return image.width, image.height
    except (UnidentifiedImageError, OSError, ValueError):
        return None, None


def same_url_variants(url: str) -> dict[str, str]:
    """Variant map for backends that cannot resize: every tier is the same URL."""
    return {tier.value: url for tier in VariantTier}


class StorageAdapter(ABC):
    """
    Abstract base class for storage backends.

    Adapters share a lazily created ``httpx.AsyncClient``. Tests (or callers
    that pool connections) can hand one in through ``http_client``.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._client = http_client
        self._timeout = timeout

    @property
    @abstractmethod
    def name(self) -> BackendName:
        """Backend identifier."""
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials/endpoints needed by this backend are present."""
        pass

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        file_name: str,
        options: UploadOptions | None = None,
    ) -> UploadedBlob:
        """
        Upload a single blob.

        Args:
            data: Raw image bytes
            file_name: Original file name
            options: Folder, optimization and variant options

        Returns:
            UploadedBlob with URL, backend handle and variants

        Raises:
            AdapterError: On network, auth or validation failure
        """
        pass

    @abstractmethod
    async def delete(self, backend_object_id: str) -> bool:
        """
        Delete a blob by its backend-native handle.

        Returns:
            True only if the backend confirmed removal. Never raises.
        """
        pass

    @abstractmethod
    def get_optimized_url(self, url: str, options: TransformOptions | None = None) -> str:
        """
        Build a transformed URL for the given image URL.

        Backends without on-the-fly transforms return ``url`` unchanged.
        """
        pass

    @abstractmethod
    async def _check_available(self) -> bool:
        """Backend-specific reachability probe. May raise."""
        pass

    async def is_available(self) -> bool:
        """Lightweight reachability/credential check. Never raises."""
        if not self.is_configured:
            return False
        try:
            return await self._check_available()
        except Exception as e:
            logger.debug(f"[{self.name}] availability probe failed: {e}")
            return False

    # ============ HTTP client ============

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _unique_path(folder: str, file_name: str) -> str:
        """Build ``{folder}/{epoch_ms}-{file_name}`` object path."""
        timestamp = int(time.time() * 1000)
        return f"{folder.strip('/')}/{timestamp}-{file_name}"

    @staticmethod
    def _extract_error(response: httpx.Response) -> str:
        """
        Extract error message from response.

        Looks for {"error": {"message": "..."}}, {"error": "..."} or
        {"message": "..."} and falls back to the status code.
        """
        try:
            data = response.json()
            if isinstance(data.get("error"), dict):
                return data["error"].get("message", f"HTTP {response.status_code}")
            elif isinstance(data.get("error"), str):
                return data["error"]
            elif "message" in data:
                return data["message"]
            return f"HTTP {response.status_code}"
        except Exception:
            return response.text or f"HTTP {response.status_code}"
