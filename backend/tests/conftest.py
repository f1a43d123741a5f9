# Test configuration and fixtures

import os
import stat
import sys
from pathlib import Path

import pytest

# Add backend dir to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from edugen.render.config import Settings as RenderSettings  # noqa: E402


def write_script(directory: Path, name: str, body: str) -> Path:
    """Create an executable /bin/sh script standing in for an external tool."""
    directory.mkdir(parents=True, exist_ok=True)
    script = directory / name
    script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def fake_bin(tmp_path):
    """Directory for fake tool scripts."""
    return tmp_path / "bin"


@pytest.fixture
def scratch_root(tmp_path):
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def render_settings(tmp_path, fake_bin, scratch_root):
    """Render settings where every external tool is absent until a test fakes it."""
    missing = str(tmp_path / "missing")
    return RenderSettings(
        manim_bin=os.path.join(missing, "manim"),
        python_bin=os.path.join(missing, "python3"),
        manim_venv=str(tmp_path / "no-venv"),
        texbin=str(fake_bin),
        latex_bin=os.path.join(missing, "latex"),
        dvisvgm_bin=os.path.join(missing, "dvisvgm"),
        asy_bin=os.path.join(missing, "asy"),
        xvfb_bin=os.path.join(missing, "xvfb-run"),
        scratch_root=str(scratch_root),
    )
