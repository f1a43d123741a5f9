"""
Configuration management for the render service.

Settings are read from the environment (and an optional ``.env`` file) once
at startup and validated with Pydantic. Endpoints receive them through
``get_settings`` so tests can swap in their own instance.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, validator
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

REPO_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseModel):
    """Render service settings with validation."""

    # Server Configuration
    port: int = Field(default=8787, ge=1, le=65535, description="Server port")

    # Manim
    manim_bin: Optional[str] = Field(default=None, description="Explicit manim executable")
    python_bin: str = Field(default="python3", description="Interpreter used for `-m manim`")
    manim_venv: str = Field(
        default=str(REPO_ROOT / ".manim-venv"),
        description="Bundled virtualenv probed for a manim executable"
    )

    # TeX toolchain (only needed by scenes using Tex/MathTex)
    texbin: str = Field(default="/Library/TeX/texbin", description="Directory holding TeX binaries")
    latex_bin: str = Field(default="latex")
    dvisvgm_bin: str = Field(default="dvisvgm")

    # Asymptote
    asy_bin: str = Field(default="asy", description="Asymptote compiler")
    xvfb_bin: str = Field(default="xvfb-run", description="Virtual display wrapper for 3D output")

    # File System
    scratch_root: Optional[str] = Field(
        default=None,
        description="Parent directory for render workspaces (system temp dir when unset)"
    )
    max_code_bytes: int = Field(default=1024 * 1024, ge=1, description="Largest accepted source")

    @validator("manim_bin", "scratch_root", pre=True)
    def blank_as_none(cls, v):
        """Treat empty environment values as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def tool_env(self) -> Dict[str, str]:
        """
        Environment for spawned tools.

        The TeX directory is prepended to PATH here instead of mutating
        ``os.environ``, so every spawn sees the same explicit search path.
        """
        env = dict(os.environ)
        path = env.get("PATH", "")
        entries = path.split(os.pathsep) if path else []
        if self.texbin and self.texbin not in entries:
            env["PATH"] = os.pathsep.join([self.texbin] + entries)
        return env

    def workspace_root(self) -> str:
        return self.scratch_root or tempfile.gettempdir()

    @classmethod
    def load(cls) -> "Settings":
        """Load and validate settings with helpful error messages."""
        try:
            return cls(
                port=int(os.getenv("PORT", "8787")),
                manim_bin=os.getenv("MANIM_BIN"),
                python_bin=os.getenv("PYTHON_BIN", "python3"),
                manim_venv=os.getenv("MANIM_VENV", str(REPO_ROOT / ".manim-venv")),
                texbin=os.getenv("TEXBIN", "/Library/TeX/texbin"),
                latex_bin=os.getenv("LATEX_BIN", "latex"),
                dvisvgm_bin=os.getenv("DVISVGM_BIN", "dvisvgm"),
                asy_bin=os.getenv("ASY_BIN", "asy"),
                xvfb_bin=os.getenv("XVFB_BIN", "xvfb-run"),
                scratch_root=os.getenv("SCRATCH_ROOT"),
                max_code_bytes=int(os.getenv("MAX_CODE_BYTES", str(1024 * 1024))),
            )
        except ValueError as e:
            print("\n" + "=" * 70)
            print("❌ CONFIGURATION ERROR")
            print("=" * 70)
            print(f"\n{str(e)}\n")
            print("Please check your .env file and ensure all render service")
            print("environment variables are set correctly.")
            print("=" * 70 + "\n")
            raise SystemExit(1)


# Global settings instance
settings: Settings = Settings.load()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
