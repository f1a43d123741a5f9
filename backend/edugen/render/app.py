import json
import time
import logging
from typing import Any, Dict

import psutil
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from ..errors import ValidationError, install_error_handlers
from .config import Settings, get_settings
from .renderers import Artifact, render_animation, render_vector
from .validation import RequestValidator

# -------- logging setup --------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("render_service")

# -------- FastAPI + CORS --------
app = FastAPI(
    title="edugen Render Service",
    description="Renders user-submitted Manim scenes and Asymptote programs.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# -------- monitoring state --------
app_state = {
    "active_renders": 0,
    "total_renders": 0,
    "failed_renders": 0,
    "start_time": time.time(),
}


async def read_json_payload(request: Request) -> Dict[str, Any]:
    """Decode the request body; an empty body counts as ``{}``."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError:
        raise ValidationError("Request body must be JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


async def _track(render) -> Artifact:
    app_state["active_renders"] += 1
    app_state["total_renders"] += 1
    try:
        return await render
    except Exception:
        app_state["failed_renders"] += 1
        raise
    finally:
        app_state["active_renders"] -= 1


def _binary_response(artifact: Artifact) -> Response:
    # Response sets Content-Length from the body
    return Response(content=artifact.data, media_type=artifact.media_type)


# -------- /render endpoint --------
@app.post("/render")
async def render_endpoint(request: Request, settings: Settings = Depends(get_settings)):
    """
    Render a Manim scene.

    Body: ``{code, scene="GeneratedScene", format="mp4"|"gif", quality="ql"}``.
    Returns the video/image bytes, or a JSON error (400 invalid input,
    422 missing LaTeX toolchain, 500 tool failure with captured output).
    """
    payload = await read_json_payload(request)
    job = RequestValidator.parse_render_request(payload, settings.max_code_bytes)
    logger.info(f"Starting Manim render (scene={job.scene}, format={job.format}, quality={job.quality})")

    artifact = await _track(render_animation(job, settings))
    return _binary_response(artifact)


# -------- /asy endpoint --------
@app.post("/asy")
async def asy_endpoint(request: Request, settings: Settings = Depends(get_settings)):
    """
    Compile an Asymptote program.

    Body: ``{code, format="png"|"svg"}``. Returns the image bytes or a JSON
    error (400 invalid input, 422 asymptote missing, 500 tool failure).
    """
    payload = await read_json_payload(request)
    job = RequestValidator.parse_asy_request(payload, settings.max_code_bytes)
    logger.info(f"Starting Asymptote render (format={job.format})")

    artifact = await _track(render_vector(job, settings))
    return _binary_response(artifact)


# -------- /health endpoint supporting GET & HEAD --------
@app.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    return {"ok": True}


# -------- /metrics endpoint --------
@app.get("/metrics")
async def get_metrics(settings: Settings = Depends(get_settings)):
    """Render counters and host resource usage."""
    disk = psutil.disk_usage(settings.workspace_root())
    return {
        "renders": {
            "active_renders": app_state["active_renders"],
            "total_renders": app_state["total_renders"],
            "failed_renders": app_state["failed_renders"],
            "uptime_seconds": int(time.time() - app_state["start_time"]),
        },
        "system": {
            "cpu_percent": psutil.cpu_percent(),
            "memory_percent": psutil.virtual_memory().percent,
            "scratch_free_gb": round(disk.free / (1024 ** 3), 2),
            "load_average": psutil.getloadavg() if hasattr(psutil, "getloadavg") else None,
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
