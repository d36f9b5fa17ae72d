"""
Wire-level tests for the storage backend adapters.

Each adapter gets an ``httpx.AsyncClient`` backed by ``httpx.MockTransport``
so requests are inspected without touching the network.
"""

import json
import time

import httpx
import pytest

from core.config import Settings
from core.exceptions import AdapterError
from services.storage import build_adapters
from services.storage.base import probe_dimensions, same_url_variants
from services.storage.cloudinary import CloudinaryAdapter
from services.storage.firebase import FirebaseStorageAdapter
from services.storage.google_photos import GooglePhotosAdapter
from services.storage.supabase import SupabaseStorageAdapter
from services.storage.types import BackendName, TransformOptions, UploadOptions


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHelpers:
    def test_probe_dimensions(self, png_bytes):
        assert probe_dimensions(png_bytes(320, 200)) == (320, 200)

    def test_probe_dimensions_not_an_image(self):
        assert probe_dimensions(b"definitely not an image") == (None, None)

    def test_same_url_variants(self):
        variants = same_url_variants("https://x/y.png")
        assert set(variants) == {"thumbnail", "small", "medium", "large", "original"}
        assert set(variants.values()) == {"https://x/y.png"}

    def test_build_adapters_from_settings(self):
        settings = Settings(
            _env_file=None,
            supabase_url="https://proj.supabase.co",
            supabase_anon_key="anon",
        )

        adapters = build_adapters(settings)

        assert set(adapters) == set(BackendName)
        assert adapters[BackendName.SUPABASE].is_configured is True
        assert adapters[BackendName.CLOUDINARY].is_configured is False

    async def test_unconfigured_adapter_is_unavailable(self):
        adapter = FirebaseStorageAdapter(storage_bucket=None)
        assert await adapter.is_available() is False


class TestCloudinaryAdapter:
    UPLOAD_RESPONSE = {
        "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/resto-1/products/pizza.jpg",
        "public_id": "resto-1/products/pizza",
        "width": 1600,
        "height": 1200,
    }

    async def test_upload_request_and_variants(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, json=self.UPLOAD_RESPONSE)

        adapter = CloudinaryAdapter(cloud_name="demo", http_client=_client(handler))

        blob = await adapter.upload(
            b"jpegdata",
            "pizza.jpg",
            UploadOptions(folder="resto-1/products"),
        )

        assert seen["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"
        assert b'name="upload_preset"' in seen["body"]
        assert b"restaurant_uploads" in seen["body"]
        assert b"resto-1/products" in seen["body"]
        assert b"c_thumb,w_150,h_150" in seen["body"]
        assert b'name="fetch_format"' in seen["body"]

        assert blob.backend_object_id == "resto-1/products/pizza"
        assert blob.width == 1600
        assert blob.variants["original"] == self.UPLOAD_RESPONSE["secure_url"]
        assert blob.variants["thumbnail"] == (
            "https://res.cloudinary.com/demo/image/upload/"
            "c_fill,w_150,h_150,q_auto,f_auto/v1/resto-1/products/pizza.jpg"
        )

    async def test_upload_without_variants_or_optimization(self):
        seen = {}

        def handler(request):
            seen["body"] = request.content
            return httpx.Response(200, json=self.UPLOAD_RESPONSE)

        adapter = CloudinaryAdapter(cloud_name="demo", http_client=_client(handler))
        await adapter.upload(
            b"x",
            "pizza.jpg",
            UploadOptions(optimize=False, generate_variants=False),
        )

        assert b'name="eager"' not in seen["body"]
        assert b'name="quality"' not in seen["body"]
        assert b"restaurant-os" in seen["body"]

    async def test_upload_error_raises_adapter_error(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "Invalid image file"}})

        adapter = CloudinaryAdapter(cloud_name="demo", http_client=_client(handler))

        with pytest.raises(AdapterError) as exc_info:
            await adapter.upload(b"x", "bad.jpg")

        assert "Invalid image file" in exc_info.value.message
        assert exc_info.value.backend == BackendName.CLOUDINARY

    async def test_upload_unconfigured(self):
        adapter = CloudinaryAdapter(cloud_name=None)
        with pytest.raises(AdapterError):
            await adapter.upload(b"x", "a.jpg")

    async def test_delete_signed(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"result": "ok"})

        adapter = CloudinaryAdapter(
            cloud_name="demo",
            api_key="key",
            api_secret="secret",
            http_client=_client(handler),
        )

        assert await adapter.delete("resto-1/products/pizza") is True
        assert seen["url"].endswith("/image/destroy")
        assert "signature=" in seen["body"]
        assert "api_key=key" in seen["body"]

    async def test_delete_not_found(self):
        adapter = CloudinaryAdapter(
            cloud_name="demo",
            api_key="key",
            api_secret="secret",
            http_client=_client(lambda request: httpx.Response(200, json={"result": "not found"})),
        )
        assert await adapter.delete("missing") is False

    async def test_delete_without_secret(self):
        adapter = CloudinaryAdapter(cloud_name="demo")
        assert await adapter.delete("anything") is False

    @pytest.mark.parametrize(
        "options,expected_segment",
        [
            (TransformOptions(width=300, height=200), "c_fill,w_300,h_200,q_auto,f_auto"),
            (TransformOptions(width=300), "c_scale,w_300,q_auto,f_auto"),
            (TransformOptions(height=200, quality=80, format="webp"), "c_scale,h_200,q_80,f_webp"),
        ],
    )
    def test_get_optimized_url(self, options, expected_segment):
        adapter = CloudinaryAdapter(cloud_name="demo")
        url = "https://res.cloudinary.com/demo/image/upload/v1/a.jpg"

        assert adapter.get_optimized_url(url, options) == (
            f"https://res.cloudinary.com/demo/image/upload/{expected_segment}/v1/a.jpg"
        )

    def test_get_optimized_url_foreign_url_unchanged(self):
        adapter = CloudinaryAdapter(cloud_name="demo")
        url = "https://example.com/upload/a.jpg"
        assert adapter.get_optimized_url(url, TransformOptions(width=100)) == url

    async def test_is_available(self):
        adapter = CloudinaryAdapter(
            cloud_name="demo",
            api_key="k",
            api_secret="s",
            http_client=_client(lambda request: httpx.Response(200, json={"resources": []})),
        )
        assert await adapter.is_available() is True

    async def test_is_available_on_network_error(self):
        def handler(request):
            raise httpx.ConnectError("boom")

        adapter = CloudinaryAdapter(cloud_name="demo", http_client=_client(handler))
        assert await adapter.is_available() is False

    async def test_preset_only_is_available_on_401(self):
        adapter = CloudinaryAdapter(
            cloud_name="demo",
            upload_preset="restaurant_uploads",
            http_client=_client(lambda request: httpx.Response(401)),
        )
        assert await adapter.is_available() is True

    async def test_rejected_credentials_are_unavailable(self):
        adapter = CloudinaryAdapter(
            cloud_name="demo",
            api_key="k",
            api_secret="wrong",
            http_client=_client(lambda request: httpx.Response(401)),
        )
        assert await adapter.is_available() is False


class TestFirebaseStorageAdapter:
    async def test_upload(self, png_bytes):
        seen = {}

        def handler(request):
            seen["request"] = request
            name = request.url.params["name"]
            return httpx.Response(200, json={"name": name, "bucket": "resto.appspot.com"})

        adapter = FirebaseStorageAdapter(
            storage_bucket="resto.appspot.com",
            api_key="fb-key",
            http_client=_client(handler),
        )

        blob = await adapter.upload(
            png_bytes(640, 480),
            "chef.png",
            UploadOptions(folder="resto-1/profiles", content_type="image/png"),
        )

        request = seen["request"]
        assert request.url.path == "/v0/b/resto.appspot.com/o"
        assert request.url.params["key"] == "fb-key"
        assert request.url.params["name"].startswith("resto-1/profiles/")
        assert request.url.params["name"].endswith("-chef.png")
        assert request.headers["content-type"] == "image/png"

        assert blob.url.startswith(
            "https://firebasestorage.googleapis.com/v0/b/resto.appspot.com/o/resto-1%2Fprofiles%2F"
        )
        assert blob.url.endswith("?alt=media")
        assert (blob.width, blob.height) == (640, 480)
        assert set(blob.variants.values()) == {blob.url}

    async def test_upload_error(self):
        adapter = FirebaseStorageAdapter(
            storage_bucket="b",
            http_client=_client(lambda request: httpx.Response(403, json={"error": {"message": "denied"}})),
        )
        with pytest.raises(AdapterError, match="denied"):
            await adapter.upload(b"x", "a.png")

    async def test_delete(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.raw_path.decode()
            return httpx.Response(204)

        adapter = FirebaseStorageAdapter(storage_bucket="b", http_client=_client(handler))

        assert await adapter.delete("resto-1/profiles/1-a.png") is True
        assert seen["method"] == "DELETE"
        assert seen["path"] == "/v0/b/b/o/resto-1%2Fprofiles%2F1-a.png"

    async def test_delete_failure(self):
        adapter = FirebaseStorageAdapter(
            storage_bucket="b",
            http_client=_client(lambda request: httpx.Response(404)),
        )
        assert await adapter.delete("missing") is False

    def test_get_optimized_url_is_identity(self):
        adapter = FirebaseStorageAdapter(storage_bucket="b")
        url = "https://firebasestorage.googleapis.com/v0/b/b/o/a.png?alt=media"
        assert adapter.get_optimized_url(url, TransformOptions(width=100)) == url

    @pytest.mark.parametrize("status,expected", [(200, True), (401, True), (500, False)])
    async def test_is_available(self, status, expected):
        adapter = FirebaseStorageAdapter(
            storage_bucket="b",
            http_client=_client(lambda request: httpx.Response(status)),
        )
        assert await adapter.is_available() is expected


class TestSupabaseStorageAdapter:
    BASE = "https://proj.supabase.co"

    def _adapter(self, handler) -> SupabaseStorageAdapter:
        return SupabaseStorageAdapter(
            url=f"{self.BASE}/",
            anon_key="anon-key",
            http_client=_client(handler),
        )

    async def test_upload(self, png_bytes):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"Key": "images/whatever"})

        blob = await self._adapter(handler).upload(
            png_bytes(100, 100),
            "logo.png",
            UploadOptions(folder="resto-1/logos", content_type="image/png"),
        )

        request = seen["request"]
        assert request.url.path.startswith("/storage/v1/object/images/resto-1/logos/")
        assert request.headers["authorization"] == "Bearer anon-key"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["cache-control"] == "2592000"
        assert request.headers["x-upsert"] == "false"

        assert blob.url.startswith(f"{self.BASE}/storage/v1/object/public/images/resto-1/logos/")
        assert blob.backend_object_id.startswith("resto-1/logos/")
        assert blob.variants["original"] == blob.url
        assert "/storage/v1/render/image/public/images/" in blob.variants["thumbnail"]
        assert blob.variants["thumbnail"].endswith("width=150&height=150")
        assert (blob.width, blob.height) == (100, 100)

    async def test_upload_error(self):
        def handler(request):
            return httpx.Response(400, json={"message": "The resource already exists"})

        with pytest.raises(AdapterError, match="already exists"):
            await self._adapter(handler).upload(b"x", "dup.png")

    async def test_upload_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out")

        with pytest.raises(AdapterError):
            await self._adapter(handler).upload(b"x", "a.png")

    async def test_delete(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json=[{"name": "resto-1/logos/1-logo.png"}])

        assert await self._adapter(handler).delete("resto-1/logos/1-logo.png") is True
        assert seen["method"] == "DELETE"
        assert seen["path"] == "/storage/v1/object/images"
        assert seen["json"] == {"prefixes": ["resto-1/logos/1-logo.png"]}

    def test_get_optimized_url(self):
        adapter = SupabaseStorageAdapter(url=self.BASE, anon_key="k")
        url = f"{self.BASE}/storage/v1/object/public/images/resto-1/a.png"

        optimized = adapter.get_optimized_url(url, TransformOptions(width=320, quality=70))

        assert optimized == (
            f"{self.BASE}/storage/v1/render/image/public/images/resto-1/a.png?width=320&quality=70"
        )

    def test_get_optimized_url_requires_width(self):
        adapter = SupabaseStorageAdapter(url=self.BASE, anon_key="k")
        url = f"{self.BASE}/storage/v1/object/public/images/a.png"

        assert adapter.get_optimized_url(url, TransformOptions(height=100)) == url
        assert adapter.get_optimized_url("https://elsewhere.com/a.png", TransformOptions(width=1)) == (
            "https://elsewhere.com/a.png"
        )

    async def test_is_available(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, json=[])

        assert await self._adapter(handler).is_available() is True
        assert seen["path"] == "/storage/v1/object/list/images"

    def test_is_configured_needs_key(self):
        assert SupabaseStorageAdapter(url=self.BASE, anon_key=None).is_configured is False


class TestGooglePhotosAdapter:
    def _adapter(self, handler) -> GooglePhotosAdapter:
        return GooglePhotosAdapter(
            client_id="cid",
            client_secret="secret",
            refresh_token="refresh",
            http_client=_client(handler),
        )

    async def test_upload_two_step(self):
        calls = []

        def handler(request):
            calls.append(request)
            if request.url.host == "oauth2.googleapis.com":
                return httpx.Response(200, json={"access_token": "tok"})
            if request.url.path == "/v1/uploads":
                return httpx.Response(200, text="upload-token-123")
            return httpx.Response(
                200,
                json={
                    "newMediaItemResults": [
                        {
                            "mediaItem": {
                                "id": "media-1",
                                "baseUrl": "https://lh3.googleusercontent.com/abc",
                                "mediaMetadata": {"width": "4032", "height": "3024"},
                            }
                        }
                    ]
                },
            )

        adapter = self._adapter(handler)
        blob = await adapter.upload(b"rawbytes", "guest.jpg", UploadOptions(folder="resto-1/user_photos"))

        assert [c.url.path for c in calls] == ["/token", "/v1/uploads", "/v1/mediaItems:batchCreate"]
        assert calls[1].headers["authorization"] == "Bearer tok"
        assert calls[1].headers["x-goog-upload-file-name"] == "guest.jpg"
        batch = json.loads(calls[2].content)
        assert batch["newMediaItems"][0]["simpleMediaItem"]["uploadToken"] == "upload-token-123"

        assert blob.backend_object_id == "media-1"
        assert blob.url == "https://lh3.googleusercontent.com/abc=w1200-h1200"
        assert blob.variants["thumbnail"] == "https://lh3.googleusercontent.com/abc=w150-h150-c"
        assert blob.variants["original"] == "https://lh3.googleusercontent.com/abc=w2048-h2048"
        assert (blob.width, blob.height) == (4032, 3024)

    async def test_access_token_is_reused(self):
        token_calls = []

        def handler(request):
            if request.url.host == "oauth2.googleapis.com":
                token_calls.append(request)
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(200)

        adapter = self._adapter(handler)
        assert await adapter.is_available() is True
        assert await adapter.is_available() is True
        assert len(token_calls) == 1

    async def test_expired_token_is_refreshed(self):
        token_calls = []

        def handler(request):
            if request.url.host == "oauth2.googleapis.com":
                token_calls.append(request)
                return httpx.Response(
                    200, json={"access_token": f"tok-{len(token_calls)}", "expires_in": 3599}
                )
            return httpx.Response(200)

        adapter = self._adapter(handler)
        assert await adapter._get_access_token() == "tok-1"
        assert await adapter._get_access_token() == "tok-1"
        assert adapter._token_expires_at <= time.monotonic() + 3599 - 60

        adapter._token_expires_at = time.monotonic() - 1
        assert await adapter._get_access_token() == "tok-2"

        assert len(token_calls) == 2

    async def test_rejected_token_is_refreshed_on_next_upload(self):
        token_calls = []
        upload_auth = []

        def handler(request):
            if request.url.host == "oauth2.googleapis.com":
                token_calls.append(request)
                return httpx.Response(
                    200, json={"access_token": f"tok-{len(token_calls)}", "expires_in": 3599}
                )
            if request.url.path == "/v1/uploads":
                upload_auth.append(request.headers["authorization"])
                if len(upload_auth) == 1:
                    return httpx.Response(401, json={"error": "UNAUTHENTICATED"})
                return httpx.Response(200, text="t")
            return httpx.Response(
                200,
                json={
                    "newMediaItemResults": [
                        {"mediaItem": {"id": "media-2", "baseUrl": "https://lh3.googleusercontent.com/x"}}
                    ]
                },
            )

        adapter = self._adapter(handler)
        with pytest.raises(AdapterError):
            await adapter.upload(b"x", "a.jpg")

        blob = await adapter.upload(b"x", "a.jpg")

        assert blob.backend_object_id == "media-2"
        assert len(token_calls) == 2
        assert upload_auth == ["Bearer tok-1", "Bearer tok-2"]

    async def test_token_failure_makes_unavailable(self):
        adapter = self._adapter(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
        assert await adapter.is_available() is False

    async def test_upload_without_media_item(self):
        def handler(request):
            if request.url.host == "oauth2.googleapis.com":
                return httpx.Response(200, json={"access_token": "tok"})
            if request.url.path == "/v1/uploads":
                return httpx.Response(200, text="t")
            return httpx.Response(200, json={"newMediaItemResults": []})

        with pytest.raises(AdapterError, match="No media item"):
            await self._adapter(handler).upload(b"x", "a.jpg")

    async def test_delete_unsupported(self):
        adapter = GooglePhotosAdapter(client_id="c", client_secret="s", refresh_token="r")
        assert await adapter.delete("media-1") is False

    def test_get_optimized_url(self):
        adapter = GooglePhotosAdapter(client_id="c", client_secret="s", refresh_token="r")

        url = adapter.get_optimized_url(
            "https://lh3.googleusercontent.com/abc=w1200-h1200",
            TransformOptions(width=400, height=300),
        )

        assert url == "https://lh3.googleusercontent.com/abc=w400-h300-c"
