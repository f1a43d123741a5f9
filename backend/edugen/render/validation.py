"""
Input validation for render requests.

Request bodies are checked here before any workspace is created or any
process is spawned, so a bad request costs nothing but a 400.
"""

import re
from typing import Any, Dict

from pydantic import BaseModel, Field

from ..errors import ValidationError

QUALITY_FLAGS = ("ql", "qm", "qh", "qp", "qk")
ANIMATION_FORMATS = ("mp4", "gif")
VECTOR_FORMATS = ("png", "svg")

# Tex(...) / MathTex(...) need a LaTeX install on the render host
LATEX_CALL = re.compile(r"(\bMathTex\s*\(|\bTex\s*\()")


class RenderRequest(BaseModel):
    """A validated Manim render job."""
    code: str = Field(..., min_length=1)
    scene: str = "GeneratedScene"
    format: str = "mp4"
    quality: str = "ql"


class AsyRequest(BaseModel):
    """A validated Asymptote render job."""
    code: str = Field(..., min_length=1)
    format: str = "png"


def uses_latex(code: str) -> bool:
    """Whether the scene calls a Tex/MathTex constructor."""
    return LATEX_CALL.search(code) is not None


class RequestValidator:
    """Validates raw JSON bodies for the render endpoints."""

    @classmethod
    def validate_code(cls, payload: Dict[str, Any], max_bytes: int) -> str:
        code = payload.get("code")
        if not code or not isinstance(code, str):
            raise ValidationError("Missing `code` (string)")
        if len(code.encode("utf-8")) > max_bytes:
            raise ValidationError(f"`code` is too large (maximum {max_bytes} bytes)")
        return code

    @classmethod
    def parse_render_request(cls, payload: Dict[str, Any], max_bytes: int) -> RenderRequest:
        """
        Validate a ``/render`` body.

        Args:
            payload: Decoded JSON body
            max_bytes: Largest accepted source, in UTF-8 bytes

        Returns:
            RenderRequest with defaults filled in and selectors lower-cased

        Raises:
            ValidationError: On a missing source or an unknown selector
        """
        code = cls.validate_code(payload, max_bytes)

        scene = payload.get("scene") or "GeneratedScene"
        # Passed straight to manim's argv, so it must not look like a flag
        if not isinstance(scene, str) or not scene.isidentifier():
            raise ValidationError("Invalid `scene` (Python class name)")

        quality = str(payload.get("quality") or "ql").lower()
        if quality not in QUALITY_FLAGS:
            raise ValidationError("Invalid `quality` (use ql, qm, qh, qp, qk)")

        fmt = str(payload.get("format") or "mp4").lower()
        if fmt not in ANIMATION_FORMATS:
            raise ValidationError("Invalid `format` (mp4|gif)")

        return RenderRequest(code=code, scene=scene, format=fmt, quality=quality)

    @classmethod
    def parse_asy_request(cls, payload: Dict[str, Any], max_bytes: int) -> AsyRequest:
        """Validate an ``/asy`` body."""
        code = cls.validate_code(payload, max_bytes)

        fmt = str(payload.get("format") or "png").lower()
        if fmt not in VECTOR_FORMATS:
            raise ValidationError("Invalid `format` (png|svg)")

        return AsyRequest(code=code, format=fmt)
