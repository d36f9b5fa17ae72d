"""
Google Photos Library API adapter.

Backup store for user-submitted photos. Auth is an OAuth refresh token
exchanged for an access token, which is refreshed shortly before it
expires or after the API rejects it. The Library API has no
delete endpoint, so ``delete`` always reports failure.
"""

import logging
import time

import httpx

from core.exceptions import AdapterError

from .base import StorageAdapter
from .types import BackendName, TransformOptions, UploadedBlob, UploadOptions

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
API_BASE = "https://photoslibrary.googleapis.com/v1"

# Refresh this long before Google says the access token expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class GooglePhotosAdapter(StorageAdapter):
    """Upload via raw bytes + mediaItems:batchCreate; size-suffixed base URLs."""

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        refresh_token: str | None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(http_client=http_client, timeout=timeout)
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    @property
    def name(self) -> BackendName:
        return BackendName.GOOGLE_PHOTOS

    @property
    def is_configured(self) -> bool:
        return bool(self._client_id and self._refresh_token)

    async def _get_access_token(self) -> str:
        """Return a live access token, refreshing it when missing or near expiry."""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        if not self._refresh_token:
            raise AdapterError("Google Photos refresh token not configured", backend=self.name)

        client = self._get_client()
        try:
            response = await client.post(
                TOKEN_URL,
                data={
                    "client_id": self._client_id or "",
                    "client_secret": self._client_secret or "",
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as e:
            raise AdapterError(f"Google token refresh failed: {e}", backend=self.name) from e

        if response.status_code != 200:
            raise AdapterError("Failed to refresh Google access token", backend=self.name)

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise AdapterError("Google token response missing access_token", backend=self.name)

        expires_in = int(payload.get("expires_in") or 3600)
        self._access_token = access_token
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        return access_token

    def _expire_token_on_401(self, response: httpx.Response) -> None:
        if response.status_code == 401:
            logger.warning("[GooglePhotos] Access token rejected, refreshing on next call")
            self._access_token = None
            self._token_expires_at = 0.0

    async def upload(
        self,
        data: bytes,
        file_name: str,
        options: UploadOptions | None = None,
    ) -> UploadedBlob:
        options = options or UploadOptions()
        token = await self._get_access_token()
        client = self._get_client()

        try:
            # Step 1: raw bytes -> upload token
            upload_response = await client.post(
                f"{API_BASE}/uploads",
                content=data,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/octet-stream",
                    "X-Goog-Upload-File-Name": file_name,
                    "X-Goog-Upload-Protocol": "raw",
                },
            )
            if upload_response.status_code != 200:
                self._expire_token_on_401(upload_response)
                raise AdapterError("Failed to upload to Google Photos", backend=self.name)
            upload_token = upload_response.text

            # Step 2: upload token -> media item
            create_response = await client.post(
                f"{API_BASE}/mediaItems:batchCreate",
                json={
                    "newMediaItems": [
                        {
                            "description": options.folder or "Restaurant image",
                            "simpleMediaItem": {
                                "fileName": file_name,
                                "uploadToken": upload_token,
                            },
                        }
                    ]
                },
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise AdapterError(f"Google Photos upload failed: {e}", backend=self.name) from e

        if create_response.status_code != 200:
            self._expire_token_on_401(create_response)
            raise AdapterError("Failed to create Google Photos media item", backend=self.name)

        results = create_response.json().get("newMediaItemResults") or []
        media_item = results[0].get("mediaItem") if results else None
        if not media_item:
            raise AdapterError("No media item returned from Google Photos", backend=self.name)

        base_url = media_item["baseUrl"]
        media_metadata = media_item.get("mediaMetadata") or {}

        logger.info(f"[GooglePhotos] Created media item {media_item.get('id')}")
        return UploadedBlob(
            url=f"{base_url}=w1200-h1200",
            backend_object_id=media_item.get("id", ""),
            variants={
                "original": f"{base_url}=w2048-h2048",
                "thumbnail": f"{base_url}=w150-h150-c",
                "small": f"{base_url}=w300-h300-c",
                "medium": f"{base_url}=w600-h600-c",
                "large": f"{base_url}=w1200-h1200-c",
            },
            width=_as_int(media_metadata.get("width")),
            height=_as_int(media_metadata.get("height")),
        )

    async def delete(self, backend_object_id: str) -> bool:
        logger.warning(
            f"[GooglePhotos] Programmatic deletion is not supported; "
            f"media item {backend_object_id} left in place"
        )
        return False

    def get_optimized_url(self, url: str, options: TransformOptions | None = None) -> str:
        """Replace any ``=...`` size suffix with ``=w<W>-h<H>-c``."""
        if not url:
            return url

        options = options or TransformOptions()
        base_url = url.split("=")[0]
        params = []
        if options.width:
            params.append(f"w{options.width}")
        if options.height:
            params.append(f"h{options.height}")
        params.append("c")
        return f"{base_url}={'-'.join(params)}"

    async def _check_available(self) -> bool:
        await self._get_access_token()
        return True


def _as_int(value) -> int | None:
    # mediaMetadata returns dimensions as strings
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
