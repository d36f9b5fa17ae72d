"""
Cloudinary storage adapter.

High-capacity CDN backend. Uploads go through an unsigned upload preset;
size variants are produced on the fly by inserting transformation
segments into the delivery URL, so nothing is stored per variant.
"""

import hashlib
import logging
import time

import httpx

from core.exceptions import AdapterError

from .base import StorageAdapter
from .types import (
    VARIANT_WIDTHS,
    BackendName,
    TransformOptions,
    UploadedBlob,
    UploadOptions,
    VariantTier,
)

logger = logging.getLogger(__name__)

API_BASE = "https://api.cloudinary.com/v1_1"

# Eager transformations requested at upload time (thumbnail, small, medium, large)
EAGER_TRANSFORMS = "c_thumb,w_150,h_150|c_fill,w_300,h_300|c_fill,w_600,h_600|c_fill,w_1200,h_1200"


class CloudinaryAdapter(StorageAdapter):
    """Cloudinary image upload/delivery via the REST upload API."""

    def __init__(
        self,
        cloud_name: str | None,
        api_key: str | None = None,
        api_secret: str | None = None,
        upload_preset: str = "restaurant_uploads",
        default_folder: str = "restaurant-os",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(http_client=http_client, timeout=timeout)
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self._upload_preset = upload_preset
        self._default_folder = default_folder

    @property
    def name(self) -> BackendName:
        return BackendName.CLOUDINARY

    @property
    def is_configured(self) -> bool:
        return bool(self._cloud_name)

    @property
    def _api_url(self) -> str:
        return f"{API_BASE}/{self._cloud_name}"

    async def upload(
        self,
        data: bytes,
        file_name: str,
        options: UploadOptions | None = None,
    ) -> UploadedBlob:
        options = options or UploadOptions()
        if not self.is_configured:
            raise AdapterError("Cloudinary cloud name not configured", backend=self.name)

        form = {
            "upload_preset": self._upload_preset,
            "folder": options.folder or self._default_folder,
        }
        if options.generate_variants:
            form["eager"] = EAGER_TRANSFORMS
            form["eager_async"] = "true"
        if options.optimize:
            form["quality"] = "auto"
            form["fetch_format"] = "auto"

        client = self._get_client()
        try:
            response = await client.post(
                f"{self._api_url}/image/upload",
                data=form,
                files={"file": (file_name, data, options.content_type)},
            )
        except httpx.HTTPError as e:
            raise AdapterError(f"Cloudinary upload failed: {e}", backend=self.name) from e

        if response.status_code != 200:
            raise AdapterError(
                f"Cloudinary upload failed: {self._extract_error(response)}",
                backend=self.name,
            )

        payload = response.json()
        secure_url = payload.get("secure_url")
        public_id = payload.get("public_id")
        if not secure_url or not public_id:
            raise AdapterError("Cloudinary response missing secure_url/public_id", backend=self.name)

        variants = {
            tier.value: self.get_optimized_url(secure_url, TransformOptions(width=size, height=size))
            for tier, size in VARIANT_WIDTHS.items()
        }
        variants[VariantTier.ORIGINAL.value] = secure_url

        logger.info(f"[Cloudinary] Uploaded {public_id}")
        return UploadedBlob(
            url=secure_url,
            backend_object_id=public_id,
            variants=variants,
            width=payload.get("width"),
            height=payload.get("height"),
        )

    async def delete(self, backend_object_id: str) -> bool:
        if not self.is_configured or not self._api_secret:
            logger.warning("[Cloudinary] Delete skipped: API credentials not configured")
            return False

        timestamp = int(time.time())
        form = {
            "public_id": backend_object_id,
            "api_key": self._api_key or "",
            "timestamp": str(timestamp),
            "signature": self._sign(backend_object_id, timestamp),
        }

        try:
            client = self._get_client()
            response = await client.post(f"{self._api_url}/image/destroy", data=form)
            return response.json().get("result") == "ok"
        except Exception as e:
            logger.error(f"[Cloudinary] Delete failed for {backend_object_id}: {e}")
            return False

    def get_optimized_url(self, url: str, options: TransformOptions | None = None) -> str:
        """
        Insert a transformation segment after ``/upload/``.

        width+height -> ``c_fill``; a single dimension -> ``c_scale``;
        quality and format default to ``auto``.
        """
        if not url or "cloudinary.com" not in url:
            return url

        marker = "/upload/"
        index = url.find(marker)
        if index == -1:
            return url

        options = options or TransformOptions()
        transforms = []
        if options.width and options.height:
            transforms.append(f"c_fill,w_{options.width},h_{options.height}")
        elif options.width:
            transforms.append(f"c_scale,w_{options.width}")
        elif options.height:
            transforms.append(f"c_scale,h_{options.height}")
        transforms.append(f"q_{options.quality or 'auto'}")
        transforms.append(f"f_{options.format or 'auto'}")

        split = index + len(marker)
        return f"{url[:split]}{','.join(transforms)}/{url[split:]}"

    async def _check_available(self) -> bool:
        client = self._get_client()
        response = await client.get(
            f"{self._api_url}/resources/image",
            auth=(self._api_key or "", self._api_secret or ""),
        )
        if self._api_key and self._api_secret:
            return response.status_code == 200
        # Preset-only setups cannot list resources; 401 still means the cloud answered
        return response.status_code in (200, 401)

    def _sign(self, public_id: str, timestamp: int) -> str:
        """SHA-1 signature for authenticated admin calls."""
        to_sign = f"public_id={public_id}&timestamp={timestamp}{self._api_secret}"
        return hashlib.sha1(to_sign.encode("utf-8")).hexdigest()
