"""
Server-side Gemini calls for text, image and video generation.

The API key stays on the server; the browser only ever sees the generated
text or media bytes.
"""

import time
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import quote

import httpx
from google import genai
from google.genai import types

from ..errors import (
    GenerationCancelled,
    GenerationFailed,
    GenerationTimeout,
    Misconfiguration,
    UpstreamUnavailable,
    ValidationError,
)
from .config import Settings

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Server misconfigured: GEMINI_API_KEY not set"


def require_prompt(payload: Dict[str, Any]) -> str:
    prompt = payload.get("prompt")
    if not prompt or not isinstance(prompt, str):
        raise ValidationError("Missing `prompt` (string)")
    return prompt


def describe(obj: Any) -> Any:
    """JSON-friendly view of an SDK object for error bodies."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json", exclude_none=True)
    return str(obj)


def signed_uri(uri: str, api_key: str) -> str:
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}key={quote(api_key, safe='')}"


async def poll_until_done(
    operation: Any,
    refresh: Callable[[Any], Awaitable[Any]],
    interval: float,
    timeout: float,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> Any:
    """
    Poll a long-running operation at a fixed interval until it is done.

    Args:
        operation: Operation as returned by the start call
        refresh: Coroutine function returning the operation's latest state
        interval: Seconds between polls (no backoff)
        timeout: Wall-clock budget in seconds
        is_disconnected: Checked before every sleep; polling stops once it
            reports that the client has gone away

    Returns:
        The finished operation

    Raises:
        GenerationTimeout: Budget exhausted before the operation finished
        GenerationCancelled: The client disconnected first
    """
    started = time.monotonic()
    polls = 0
    while not getattr(operation, "done", False):
        if time.monotonic() - started > timeout:
            logger.warning(f"Operation still running after {timeout}s; giving up")
            raise GenerationTimeout("Video generation timed out", last=describe(operation))
        if is_disconnected is not None and await is_disconnected():
            # The remote job keeps running; only the local loop stops.
            logger.warning(f"Client disconnected after {polls} polls; stopping")
            raise GenerationCancelled("Client disconnected")
        await asyncio.sleep(interval)
        operation = await refresh(operation)
        polls += 1
        logger.info(f"Polled video operation ({polls}), done={getattr(operation, 'done', False)}")
    return operation


class GenAIService:
    """Thin async wrapper around the google-genai client."""

    def __init__(self, client: Any, api_key: str, settings: Settings,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client = client
        self.api_key = api_key
        self.settings = settings
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["GenAIService"]:
        """Build the service, or return None when no API key is configured."""
        if not settings.gemini_api_key:
            return None
        client = genai.Client(api_key=settings.gemini_api_key)
        return cls(client, settings.gemini_api_key, settings)

    async def generate_text(self, prompt: str) -> str:
        try:
            result = await self.client.aio.models.generate_content(
                model=self.settings.text_model,
                contents=prompt,
            )
        except Exception as e:
            logger.error(f"gen-text error: {e}")
            raise GenerationFailed("Text generation failed", details=str(e))
        return str(result.text or "")

    async def generate_image(self, prompt: str) -> bytes:
        try:
            response = await self.client.aio.models.generate_images(
                model=self.settings.image_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(number_of_images=1),
            )
        except Exception as e:
            logger.error(f"gen-image error: {e}")
            raise GenerationFailed("Image generation failed", details=str(e))

        images = response.generated_images or []
        image_bytes = images[0].image.image_bytes if images and images[0].image else None
        if not image_bytes:
            raise UpstreamUnavailable("No image bytes in response", body=describe(response))
        return image_bytes

    async def generate_video(
        self,
        prompt: str,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> bytes:
        """Start a video job, wait for it, and download the first result."""
        try:
            operation = await self.client.aio.models.generate_videos(
                model=self.settings.video_model,
                prompt=prompt,
            )
        except Exception as e:
            logger.error(f"gen-video error: {e}")
            raise GenerationFailed("Video generation failed", details=str(e))

        operation = await poll_until_done(
            operation,
            self._refresh,
            interval=self.settings.video_poll_interval,
            timeout=self.settings.video_poll_timeout,
            is_disconnected=is_disconnected,
        )

        videos = operation.response.generated_videos if operation.response else None
        uri = videos[0].video.uri if videos and videos[0].video else None
        if not uri:
            raise UpstreamUnavailable("No video uri in operation result", body=describe(operation))
        return await self._download(uri)

    async def _refresh(self, operation: Any) -> Any:
        try:
            return await self.client.aio.operations.get(operation)
        except Exception as e:
            logger.error(f"gen-video poll error: {e}")
            raise GenerationFailed("Video generation failed", details=str(e))

    async def _download(self, uri: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=120, follow_redirects=True, transport=self.transport
            ) as client:
                response = await client.get(signed_uri(uri, self.api_key))
        except httpx.HTTPError as e:
            raise GenerationFailed("Video generation failed", details=str(e))
        if not response.is_success:
            raise UpstreamUnavailable(
                "Video download failed", status=response.status_code, body=response.text
            )
        return response.content


def require_service(service: Optional[GenAIService]) -> GenAIService:
    if service is None:
        raise Misconfiguration(MISSING_KEY_MESSAGE)
    return service
