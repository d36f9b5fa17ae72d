"""
Storage backends for the Restaurant Image Gateway.

Supports four backends behind one ``StorageAdapter`` interface:
- Cloudinary (CDN with URL transforms)
- Firebase Storage (plain object storage)
- Supabase Storage (first-party store, last resort)
- Google Photos (backup photo library)

Usage:
    from services.storage import build_adapters

    adapters = build_adapters(settings)
    blob = await adapters[BackendName.SUPABASE].upload(data, "logo.png", options)
"""

from core.config import Settings

from .base import StorageAdapter, probe_dimensions
from .cloudinary import CloudinaryAdapter
from .firebase import FirebaseStorageAdapter
from .google_photos import GooglePhotosAdapter
from .supabase import SupabaseStorageAdapter
from .types import BackendName


def build_adapters(settings: Settings) -> dict[BackendName, StorageAdapter]:
    """
    Create one adapter per backend from application settings.

    Unconfigured backends are still constructed; they report
    ``is_available() == False`` and the router skips them.
    """
    timeout = settings.adapter_timeout_seconds
    return {
        BackendName.CLOUDINARY: CloudinaryAdapter(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            upload_preset=settings.cloudinary_upload_preset,
            default_folder=settings.cloudinary_folder,
            timeout=timeout,
        ),
        BackendName.FIREBASE: FirebaseStorageAdapter(
            storage_bucket=settings.firebase_storage_bucket,
            api_key=settings.firebase_api_key,
            timeout=timeout,
        ),
        BackendName.SUPABASE: SupabaseStorageAdapter(
            url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            bucket=settings.supabase_storage_bucket,
            timeout=timeout,
        ),
        BackendName.GOOGLE_PHOTOS: GooglePhotosAdapter(
            client_id=settings.google_photos_client_id,
            client_secret=settings.google_photos_client_secret,
            refresh_token=settings.google_photos_refresh_token,
            timeout=timeout,
        ),
    }


__all__ = [
    # Core classes
    "StorageAdapter",
    "BackendName",
    # Adapters
    "CloudinaryAdapter",
    "FirebaseStorageAdapter",
    "SupabaseStorageAdapter",
    "GooglePhotosAdapter",
    # Helpers
    "build_adapters",
    "probe_dimensions",
]
