"""
Forwarding render requests to the render service.

The web service never renders anything itself: ``/api/manim-proxy`` and
``/api/asy-proxy`` pass the browser's JSON body through to the render
service and hand its bytes back untouched.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..errors import Misconfiguration, UpstreamUnavailable

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class UpstreamResult:
    content: bytes
    content_type: str


def safe_json(text: str) -> Any:
    """Parse ``text`` as JSON, falling back to the raw string."""
    try:
        return json.loads(text)
    except ValueError:
        return text


class RenderProxy:
    """Relays render requests to one upstream render service."""

    def __init__(
        self,
        base_url: Optional[str],
        timeout: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Render service base URL; None when not configured
            timeout: Seconds to wait for the upstream render
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.transport = transport

    async def forward(self, path: str, body: bytes, service_name: str) -> UpstreamResult:
        """
        POST ``body`` to ``<base_url><path>`` and return the upstream bytes.

        Raises:
            Misconfiguration: No upstream URL configured (checked first)
            UpstreamUnavailable: Upstream unreachable or answered non-2xx
        """
        if not self.base_url:
            raise Misconfiguration("MANIM_SERVICE_URL not configured")

        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    url,
                    content=body or b"{}",
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.error(f"[{service_name}] upstream {url} unreachable: {exc}")
            raise UpstreamUnavailable(f"Failed to reach {service_name} service", details=str(exc))

        if not response.is_success:
            logger.warning(f"[{service_name}] upstream answered {response.status_code}")
            raise UpstreamUnavailable(
                f"Upstream {service_name} error",
                status=response.status_code,
                body=safe_json(response.text),
            )

        return UpstreamResult(
            content=response.content,
            content_type=response.headers.get("content-type", DEFAULT_CONTENT_TYPE),
        )
