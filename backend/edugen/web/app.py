import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import FileResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from ..errors import ValidationError, install_error_handlers
from .config import Settings, get_settings
from .genai_service import GenAIService, require_prompt, require_service
from .proxy import RenderProxy
from .share_store import ShareStore

# ------------------------------------------------------------
# Logging configuration
# ------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("web_service")

STATIC_DIR = Path(__file__).resolve().parent / "static"

# ------------------------------------------------------------
# FastAPI application instance
# ------------------------------------------------------------
app = FastAPI(
    title="edugen Web Service",
    description="Serves the single-page app, share snapshots, Gemini generation and render proxies.",
    version="1.0.0",
)

install_error_handlers(app)


# ------------------------------------------------------------
# Security Headers Middleware
# ------------------------------------------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    CONTENT_SECURITY_POLICY = (
        "default-src 'self'; img-src 'self' data: blob:; media-src 'self' data: blob:; "
        "style-src 'self' 'unsafe-inline'; script-src 'self' https://cdn.jsdelivr.net 'unsafe-inline'; "
        "connect-src 'self'; frame-ancestors 'none'"
    )

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains; preload"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
        response.headers["Cross-Origin-Resource-Policy"] = "same-site"
        response.headers["X-DNS-Prefetch-Control"] = "off"
        # Inline scripts in index.html need 'unsafe-inline'
        response.headers["Content-Security-Policy"] = self.CONTENT_SECURITY_POLICY
        return response


app.add_middleware(SecurityHeadersMiddleware)


# ------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------
def get_share_store(settings: Settings = Depends(get_settings)) -> ShareStore:
    return ShareStore(settings.share_dir)


def get_render_proxy(settings: Settings = Depends(get_settings)) -> RenderProxy:
    return RenderProxy(settings.manim_service_url, timeout=settings.proxy_timeout)


def get_genai_service(settings: Settings = Depends(get_settings)) -> Optional[GenAIService]:
    return GenAIService.from_settings(settings)


async def read_json_payload(request: Request) -> Dict[str, Any]:
    """Decode the request body; an empty or non-object body counts as ``{}``."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError:
        raise ValidationError("Request body must be JSON")
    return payload if isinstance(payload, dict) else {}


def request_base_url(request: Request) -> str:
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme or "http"
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or "localhost"
    return f"{proto}://{host}"


# ------------------------------------------------------------
# Health
# ------------------------------------------------------------
@app.get("/api/health")
async def health_check():
    return {"ok": True}


# ------------------------------------------------------------
# Share API
# ------------------------------------------------------------
@app.post("/api/share")
async def create_share(request: Request, store: ShareStore = Depends(get_share_store)):
    """Store the current document and its embedded assets; returns a share URL."""
    payload = await read_json_payload(request)
    share_id = await store.create(payload)
    return {"id": share_id, "url": f"{request_base_url(request)}/s/{share_id}"}


@app.get("/s/{share_id}.json")
async def get_share(share_id: str, store: ShareStore = Depends(get_share_store)):
    data = await store.get(share_id)
    return Response(content=data, media_type="application/json")


@app.get("/s/{share_id}")
async def share_viewer(share_id: str):
    return FileResponse(STATIC_DIR / "share.html")


# ------------------------------------------------------------
# Gemini generation
# ------------------------------------------------------------
@app.post("/api/gen-text")
async def gen_text(request: Request, service: Optional[GenAIService] = Depends(get_genai_service)):
    prompt = require_prompt(await read_json_payload(request))
    text = await require_service(service).generate_text(prompt)
    return {"text": text}


@app.post("/api/gen-image")
async def gen_image(request: Request, service: Optional[GenAIService] = Depends(get_genai_service)):
    prompt = require_prompt(await read_json_payload(request))
    data = await require_service(service).generate_image(prompt)
    return Response(content=data, media_type="image/png")


@app.post("/api/gen-video")
async def gen_video(request: Request, service: Optional[GenAIService] = Depends(get_genai_service)):
    """
    Generate a short video.

    Polls the remote operation every 8 seconds for up to 5 minutes. Polling
    stops early if the client disconnects; the remote job is not cancelled.
    """
    prompt = require_prompt(await read_json_payload(request))
    data = await require_service(service).generate_video(
        prompt, is_disconnected=request.is_disconnected
    )
    return Response(content=data, media_type="video/mp4")


# ------------------------------------------------------------
# Render proxies
# ------------------------------------------------------------
@app.post("/api/manim-proxy")
async def manim_proxy(request: Request, proxy: RenderProxy = Depends(get_render_proxy)):
    result = await proxy.forward("/render", await request.body(), "manim")
    return Response(content=result.content, media_type=result.content_type)


@app.post("/api/asy-proxy")
async def asy_proxy(request: Request, proxy: RenderProxy = Depends(get_render_proxy)):
    # Asymptote is served by the same render service
    result = await proxy.forward("/asy", await request.body(), "asymptote")
    return Response(content=result.content, media_type=result.content_type)


# ------------------------------------------------------------
# Single-page app
# ------------------------------------------------------------
@app.get("/")
async def index():
    return FileResponse(STATIC_DIR / "index.html")


app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port, proxy_headers=True, forwarded_allow_ips="*")
