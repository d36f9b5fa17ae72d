"""
Supabase Storage adapter (Storage REST API).

First-party object store with the smallest quotas. It is the router's
last resort, so it is expected to be configured in every deployment.
"""

import logging
import re
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import httpx

from core.exceptions import AdapterError

from .base import StorageAdapter, probe_dimensions
from .types import (
    VARIANT_WIDTHS,
    BackendName,
    TransformOptions,
    UploadedBlob,
    UploadOptions,
    VariantTier,
)

logger = logging.getLogger(__name__)

PUBLIC_PATH = re.compile(r"/storage/v1/object/public/(.+)")
CACHE_CONTROL_SECONDS = "2592000"  # 30 days


class SupabaseStorageAdapter(StorageAdapter):
    """Supabase Storage upload/delete with render-endpoint transforms."""

    def __init__(
        self,
        url: str | None,
        anon_key: str | None,
        bucket: str = "images",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(http_client=http_client, timeout=timeout)
        self._url = url.rstrip("/") if url else None
        self._anon_key = anon_key
        self._bucket = bucket

    @property
    def name(self) -> BackendName:
        return BackendName.SUPABASE

    @property
    def is_configured(self) -> bool:
        return bool(self._url and self._anon_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._anon_key}",
            "apikey": self._anon_key or "",
        }

    def public_url(self, path: str) -> str:
        return f"{self._url}/storage/v1/object/public/{self._bucket}/{quote(path)}"

    async def upload(
        self,
        data: bytes,
        file_name: str,
        options: UploadOptions | None = None,
    ) -> UploadedBlob:
        options = options or UploadOptions()
        if not self.is_configured:
            raise AdapterError("Supabase URL/key not configured", backend=self.name)

        path = self._unique_path(options.folder or "uploads", file_name)
        headers = {
            **self._headers(),
            "Content-Type": options.content_type,
            "cache-control": CACHE_CONTROL_SECONDS,
            "x-upsert": "false",
        }

        client = self._get_client()
        try:
            response = await client.post(
                f"{self._url}/storage/v1/object/{self._bucket}/{quote(path)}",
                content=data,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise AdapterError(f"Supabase upload failed: {e}", backend=self.name) from e

        if response.status_code != 200:
            raise AdapterError(
                f"Supabase upload failed: {self._extract_error(response)}",
                backend=self.name,
            )

        url = self.public_url(path)
        variants = {
            tier.value: self.get_optimized_url(url, TransformOptions(width=size, height=size))
            for tier, size in VARIANT_WIDTHS.items()
        }
        variants[VariantTier.ORIGINAL.value] = url
        width, height = probe_dimensions(data)

        logger.info(f"[Supabase] Uploaded {path}")
        return UploadedBlob(
            url=url,
            backend_object_id=path,
            variants=variants,
            width=width,
            height=height,
        )

    async def delete(self, backend_object_id: str) -> bool:
        if not self.is_configured:
            return False
        try:
            client = self._get_client()
            response = await client.request(
                "DELETE",
                f"{self._url}/storage/v1/object/{self._bucket}",
                json={"prefixes": [backend_object_id]},
                headers=self._headers(),
            )
            return response.is_success
        except Exception as e:
            logger.error(f"[Supabase] Delete failed for {backend_object_id}: {e}")
            return False

    def get_optimized_url(self, url: str, options: TransformOptions | None = None) -> str:
        """
        Rewrite a public object URL to the image render endpoint.

        Requires a width; URLs that are neither public object URLs nor
        render URLs are returned unchanged.
        """
        if not url or not options or not options.width:
            return url

        parts = urlsplit(url)
        if "/render/image/" in parts.path:
            path = parts.path
        else:
            match = PUBLIC_PATH.search(parts.path)
            if not match:
                return url
            path = f"/storage/v1/render/image/public/{match.group(1)}"

        query = dict(parse_qsl(parts.query))
        query["width"] = str(options.width)
        if options.height:
            query["height"] = str(options.height)
        if options.quality:
            query["quality"] = str(options.quality)

        return urlunsplit((parts.scheme, parts.netloc, path, urlencode(query), parts.fragment))

    async def _check_available(self) -> bool:
        client = self._get_client()
        response = await client.post(
            f"{self._url}/storage/v1/object/list/{self._bucket}",
            json={"prefix": "", "limit": 1},
            headers=self._headers(),
        )
        return response.is_success
