"""
Firebase Storage adapter (REST API, no SDK).

Plain object storage: there is no resizing, so every variant tier points
at the same download URL and dimensions are read locally with Pillow.
"""

import logging
from urllib.parse import quote

import httpx

from core.exceptions import AdapterError

from .base import StorageAdapter, probe_dimensions, same_url_variants
from .types import BackendName, TransformOptions, UploadedBlob, UploadOptions

logger = logging.getLogger(__name__)

API_BASE = "https://firebasestorage.googleapis.com/v0/b"


class FirebaseStorageAdapter(StorageAdapter):
    """Firebase Storage upload/delete via the public REST endpoint."""

    def __init__(
        self,
        storage_bucket: str | None,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(http_client=http_client, timeout=timeout)
        self._bucket = storage_bucket
        self._api_key = api_key

    @property
    def name(self) -> BackendName:
        return BackendName.FIREBASE

    @property
    def is_configured(self) -> bool:
        return bool(self._bucket)

    @property
    def _objects_url(self) -> str:
        return f"{API_BASE}/{self._bucket}/o"

    def _download_url(self, object_name: str) -> str:
        return f"{self._objects_url}/{quote(object_name, safe='')}?alt=media"

    async def upload(
        self,
        data: bytes,
        file_name: str,
        options: UploadOptions | None = None,
    ) -> UploadedBlob:
        options = options or UploadOptions()
        if not self.is_configured:
            raise AdapterError("Firebase storage bucket not configured", backend=self.name)

        object_name = self._unique_path(options.folder or "images", file_name)
        params = {"name": object_name}
        if self._api_key:
            params["key"] = self._api_key

        client = self._get_client()
        try:
            response = await client.post(
                self._objects_url,
                params=params,
                content=data,
                headers={"Content-Type": options.content_type},
            )
        except httpx.HTTPError as e:
            raise AdapterError(f"Firebase upload failed: {e}", backend=self.name) from e

        if response.status_code != 200:
            raise AdapterError(
                f"Firebase upload failed: {self._extract_error(response)}",
                backend=self.name,
            )

        stored_name = response.json().get("name") or object_name
        url = self._download_url(stored_name)
        width, height = probe_dimensions(data)

        logger.info(f"[Firebase] Uploaded {stored_name}")
        return UploadedBlob(
            url=url,
            backend_object_id=stored_name,
            variants=same_url_variants(url),
            width=width,
            height=height,
        )

    async def delete(self, backend_object_id: str) -> bool:
        if not self.is_configured:
            return False
        try:
            client = self._get_client()
            response = await client.delete(f"{self._objects_url}/{quote(backend_object_id, safe='')}")
            return response.is_success
        except Exception as e:
            logger.error(f"[Firebase] Delete failed for {backend_object_id}: {e}")
            return False

    def get_optimized_url(self, url: str, options: TransformOptions | None = None) -> str:
        # No transformation service on plain Firebase Storage
        return url

    async def _check_available(self) -> bool:
        client = self._get_client()
        response = await client.get(self._objects_url)
        # 401 means the bucket exists but listing needs auth
        return response.status_code in (200, 401)
