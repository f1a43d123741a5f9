"""
Structured error handling and response formatting.

Every failure the services know about is raised as a ``ServiceError``
subclass carrying its HTTP status. A single FastAPI exception handler turns
it into one flat JSON body (``{"error": ..., **extras}``) tagged with a
correlation ID, so an endpoint never has to build error responses itself.
"""

import uuid
import logging
from typing import Optional, Dict, Any, List

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors that map onto one JSON error response."""

    status_code: int = 500

    def __init__(self, message: str, **extras: Any):
        super().__init__(message)
        self.message = message
        self.extras = extras

    def body(self) -> Dict[str, Any]:
        content: Dict[str, Any] = {"error": self.message}
        content.update(self.extras)
        return content


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class DependencyMissing(ServiceError):
    """A required external toolchain is not installed on the host."""

    status_code = 422

    def __init__(self, message: str, details: str, hints: List[str], **extras: Any):
        super().__init__(message, details=details, hints=hints, **extras)


class ToolExecutionFailure(ServiceError):
    """The external tool ran but exited non-zero."""

    def __init__(self, message: str, code: int, stdout: str, stderr: str):
        super().__init__(message, code=code, stdout=stdout, stderr=stderr)


class SpawnFailure(ServiceError):
    """The external tool could not be started at all."""

    def __init__(self, message: str, details: str):
        super().__init__(message, details=details)


class ArtifactNotFound(ServiceError):
    """The tool exited cleanly but the expected output file is missing."""

    def __init__(self, stdout: str, stderr: str):
        super().__init__("Output not found", stdout=stdout, stderr=stderr)


class ArtifactUnreadable(ServiceError):
    def __init__(self, details: str):
        super().__init__("Failed to send file", details=details)


class UpstreamUnavailable(ServiceError):
    """An upstream service could not be reached or answered with an error."""

    status_code = 502


class Misconfiguration(ServiceError):
    """A required configuration value is absent."""


class GenerationFailed(ServiceError):
    def __init__(self, message: str, details: str):
        super().__init__(message, details=details)


class GenerationTimeout(ServiceError):
    status_code = 504


class GenerationCancelled(ServiceError):
    # nginx's "client closed request"
    status_code = 499


class ErrorResponse:
    """Structured error response with consistent format."""

    @staticmethod
    def create(
        status_code: int,
        content: Dict[str, Any],
        correlation_id: Optional[str] = None
    ) -> JSONResponse:
        """
        Create a structured error response.

        Args:
            status_code: HTTP status code
            content: Flat error body, always holding an ``error`` message
            correlation_id: Request correlation ID for tracing

        Returns:
            JSONResponse carrying the body and an ``X-Correlation-ID`` header
        """
        if correlation_id is None:
            correlation_id = get_correlation_id()

        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"[{correlation_id}] HTTP {status_code}: {content.get('error')}",
            extra={
                "correlation_id": correlation_id,
                "status_code": status_code
            }
        )

        return JSONResponse(
            status_code=status_code,
            content=content,
            headers={"X-Correlation-ID": correlation_id}
        )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return ErrorResponse.create(exc.status_code, exc.body())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    correlation_id = get_correlation_id()
    logger.error(
        f"[{correlation_id}] Unhandled exception: {exc} - {request.url}",
        exc_info=exc
    )
    return ErrorResponse.create(
        500,
        {"error": "Server error", "details": str(exc)},
        correlation_id=correlation_id
    )


def install_error_handlers(app) -> None:
    """Register the handlers that translate exceptions into JSON errors."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


def get_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())
