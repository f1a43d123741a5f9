"""
Endpoint tests for the web service.

The render service is faked with ``httpx.MockTransport``; the Gemini client
is faked with a small stand-in exposing the same ``aio`` surface.
"""

import json
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient

from edugen.web.app import app, get_genai_service, get_render_proxy
from edugen.web.config import Settings, get_settings
from edugen.web.genai_service import GenAIService
from edugen.web.proxy import RenderProxy


@pytest.fixture
def web_settings(tmp_path):
    return Settings(share_dir=str(tmp_path / "shares"))


@pytest.fixture
def client(web_settings):
    app.dependency_overrides[get_settings] = lambda: web_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_upstream(handler):
    """Route proxy traffic to ``handler`` instead of the network."""
    proxy = RenderProxy("http://render.internal/", transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_render_proxy] = lambda: proxy


class TestHealthAndPages:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_security_headers(self, client):
        response = client.get("/api/health")
        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert "frame-ancestors 'none'" in response.headers["content-security-policy"]

    def test_index_served(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]


class TestRenderProxy:
    """Test /api/manim-proxy and /api/asy-proxy."""

    def test_unconfigured_upstream(self, client):
        """Without MANIM_SERVICE_URL the proxy fails before any network call."""
        response = client.post("/api/manim-proxy", json={"code": "x"})

        assert response.status_code == 500
        assert response.json() == {"error": "MANIM_SERVICE_URL not configured"}

        response = client.post("/api/asy-proxy", json={"code": "x"})
        assert response.status_code == 500

    def test_relays_bytes_and_content_type(self, client):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, content=b"\x00\x01video", headers={"Content-Type": "video/mp4"})

        use_upstream(handler)
        body = {"code": "from manim import *", "format": "mp4", "quality": "ql"}
        response = client.post("/api/manim-proxy", content=json.dumps(body))

        assert response.status_code == 200
        assert response.content == b"\x00\x01video"
        assert response.headers["content-type"] == "video/mp4"
        assert seen["url"] == "http://render.internal/render"
        assert json.loads(seen["body"]) == body

    def test_asy_proxy_targets_asy(self, client):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, content=b"<svg/>", headers={"Content-Type": "image/svg+xml"})

        use_upstream(handler)
        response = client.post("/api/asy-proxy", json={"code": "draw((0,0));", "format": "svg"})

        assert response.status_code == 200
        assert seen["path"] == "/asy"

    def test_upstream_error_is_wrapped(self, client):
        """A non-2xx upstream answer becomes a 502 carrying the parsed body."""
        def handler(request):
            return httpx.Response(422, json={"error": "Asymptote not found"})

        use_upstream(handler)
        response = client.post("/api/asy-proxy", json={"code": "draw((0,0));"})

        assert response.status_code == 502
        assert response.json() == {
            "error": "Upstream asymptote error",
            "status": 422,
            "body": {"error": "Asymptote not found"},
        }

    def test_upstream_text_error_kept_raw(self, client):
        def handler(request):
            return httpx.Response(500, text="Internal Server Error")

        use_upstream(handler)
        response = client.post("/api/manim-proxy", json={"code": "x"})

        assert response.status_code == 502
        assert response.json()["body"] == "Internal Server Error"

    def test_upstream_unreachable(self, client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        use_upstream(handler)
        response = client.post("/api/manim-proxy", json={"code": "x"})

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "Failed to reach manim service"
        assert "connection refused" in body["details"]


class TestShare:
    """Test share snapshot storage."""

    def test_create_and_fetch(self, client):
        response = client.post(
            "/api/share",
            json={"md": "# Title", "images": {"a": "data:image/png;base64,AA=="}, "videos": "bogus"},
            headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "edu.example"},
        )

        assert response.status_code == 200
        created = response.json()
        assert len(created["id"]) == 10
        assert created["url"] == f"https://edu.example/s/{created['id']}"

        stored = client.get(f"/s/{created['id']}.json")
        assert stored.status_code == 200
        snapshot = stored.json()
        assert snapshot["md"] == "# Title"
        assert snapshot["images"] == {"a": "data:image/png;base64,AA=="}
        assert snapshot["videos"] == {}
        assert snapshot["version"] == 1
        assert snapshot["createdAt"]

    def test_missing_markdown(self, client):
        response = client.post("/api/share", json={"images": {}})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing `md` (string)"

    def test_unknown_share(self, client):
        response = client.get("/s/doesnotexist.json")
        assert response.status_code == 404
        assert response.json() == {"error": "Share not found"}

    def test_share_viewer_page(self, client):
        response = client.get("/s/abc123")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]


class FakeModels:
    async def generate_content(self, model, contents):
        return SimpleNamespace(text=f"echo: {contents}")

    async def generate_images(self, model, prompt, config):
        image = SimpleNamespace(image_bytes=b"\x89PNG")
        return SimpleNamespace(generated_images=[SimpleNamespace(image=image)])


class TestGeneration:
    """Test the Gemini-backed endpoints."""

    def test_missing_key(self, client):
        response = client.post("/api/gen-text", json={"prompt": "hello"})
        assert response.status_code == 500
        assert response.json()["error"] == "Server misconfigured: GEMINI_API_KEY not set"

    def test_missing_prompt_checked_first(self, client):
        response = client.post("/api/gen-image", json={})
        assert response.status_code == 400

    def test_gen_text(self, client, web_settings):
        fake_client = SimpleNamespace(aio=SimpleNamespace(models=FakeModels()))
        service = GenAIService(fake_client, "key", web_settings)
        app.dependency_overrides[get_genai_service] = lambda: service

        response = client.post("/api/gen-text", json={"prompt": "hello"})
        assert response.status_code == 200
        assert response.json() == {"text": "echo: hello"}

    def test_gen_image(self, client, web_settings):
        fake_client = SimpleNamespace(aio=SimpleNamespace(models=FakeModels()))
        service = GenAIService(fake_client, "key", web_settings)
        app.dependency_overrides[get_genai_service] = lambda: service

        response = client.post("/api/gen-image", json={"prompt": "a cat"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == b"\x89PNG"
