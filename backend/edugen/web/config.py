"""
Configuration management for the web service.

Optional integrations (the render service URL, the Gemini key) are allowed
to be missing at startup; the endpoints that need them answer with a
"misconfigured" error instead.
"""

import os
import tempfile
from typing import Optional

from pydantic import BaseModel, Field, validator
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_SHARE_DIR = os.path.join(tempfile.gettempdir(), "edugen-shares")


class Settings(BaseModel):
    """Web service settings with validation."""

    # Server Configuration
    port: int = Field(default=3000, ge=1, le=65535, description="Server port")

    # Upstream render service
    manim_service_url: Optional[str] = Field(default=None, description="Render service base URL")
    proxy_timeout: float = Field(default=600.0, gt=0, description="Upstream render timeout in seconds")

    # Gemini
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    text_model: str = Field(default="gemini-2.0-flash-001")
    image_model: str = Field(default="imagen-4.0-generate-001")
    video_model: str = Field(default="veo-3.0-generate-001")
    video_poll_interval: float = Field(default=8.0, gt=0, description="Seconds between operation polls")
    video_poll_timeout: float = Field(default=300.0, gt=0, description="Give up polling after this many seconds")

    # File System
    share_dir: str = Field(default=DEFAULT_SHARE_DIR, description="Where share snapshots are stored")

    @validator("manim_service_url", "gemini_api_key", pre=True)
    def blank_as_none(cls, v):
        """Treat empty environment values as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @validator("manim_service_url")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/") if v else v

    @classmethod
    def load(cls) -> "Settings":
        """Load and validate settings with helpful error messages."""
        try:
            return cls(
                port=int(os.getenv("PORT", "3000")),
                manim_service_url=os.getenv("MANIM_SERVICE_URL"),
                proxy_timeout=float(os.getenv("PROXY_TIMEOUT", "600")),
                gemini_api_key=os.getenv("GEMINI_API_KEY"),
                text_model=os.getenv("GEMINI_TEXT_MODEL", "gemini-2.0-flash-001"),
                image_model=os.getenv("GEMINI_IMAGE_MODEL", "imagen-4.0-generate-001"),
                video_model=os.getenv("GEMINI_VIDEO_MODEL", "veo-3.0-generate-001"),
                share_dir=os.getenv("SHARE_DIR") or DEFAULT_SHARE_DIR,
            )
        except ValueError as e:
            print("\n" + "=" * 70)
            print("❌ CONFIGURATION ERROR")
            print("=" * 70)
            print(f"\n{str(e)}\n")
            print("Please check your .env file and ensure all web service")
            print("environment variables are set correctly.")
            print("=" * 70 + "\n")
            raise SystemExit(1)


# Global settings instance
settings: Settings = Settings.load()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
