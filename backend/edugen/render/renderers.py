"""
Render pipelines for the two external tools.

Both follow the same shape: check the tool's preconditions, write the
source into a fresh workspace, run the tool, locate its output and read it
back. The workspace is released on every path out of ``render_*``.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..errors import (
    ArtifactNotFound,
    ArtifactUnreadable,
    DependencyMissing,
    SpawnFailure,
    ToolExecutionFailure,
)
from .config import Settings
from .locator import find_file, find_vector_output
from .probe import command_exists
from .runner import Exited, SpawnFailed, run_process
from .validation import AsyRequest, RenderRequest, uses_latex
from .workspace import WorkspaceManager

logger = logging.getLogger(__name__)

OUTPUT_STEM = "out"
XVFB_SERVER_ARGS = "-screen 0 1280x1024x24 -ac +extension GLX"

CONTENT_TYPES = {
    "mp4": "video/mp4",
    "gif": "image/gif",
    "png": "image/png",
    "svg": "image/svg+xml",
}

LATEX_HINTS = [
    'macOS: brew install --cask basictex && echo "export PATH=/Library/TeX/texbin:$PATH" >> ~/.zshrc',
    "then: sudo tlmgr update --self && sudo tlmgr install dvisvgm cm-super type1cm amsfonts "
    "amsmath xcolor geometry standalone preview latexmk",
    "Alternatively, avoid Tex/MathTex and use Text/MarkupText for non-LaTeX labels.",
]

ASY_HINTS = [
    "Debian/Ubuntu: apt-get update && apt-get install -y asymptote",
    "macOS: brew install asymptote",
]


@dataclass(frozen=True)
class Artifact:
    data: bytes
    media_type: str


# ------------------------------------------------------------
# Preconditions
# ------------------------------------------------------------
async def require_latex_toolchain(settings: Settings) -> None:
    """Raise DependencyMissing unless both latex and dvisvgm can be run."""
    env = settings.tool_env()
    has_latex, has_dvisvgm = await asyncio.gather(
        command_exists(settings.latex_bin, ["--version"], env=env),
        command_exists(settings.dvisvgm_bin, ["--version"], env=env),
    )
    if has_latex and has_dvisvgm:
        return
    raise DependencyMissing(
        "LaTeX toolchain not found",
        details="Your Manim code uses Tex/MathTex, which requires LaTeX (latex) and dvisvgm.",
        hints=LATEX_HINTS,
        missing={"latex": has_latex, "dvisvgm": has_dvisvgm},
    )


async def require_asymptote(settings: Settings) -> None:
    if await command_exists(settings.asy_bin, ["--version"], env=settings.tool_env()):
        return
    raise DependencyMissing(
        "Asymptote not found",
        details="Install the `asymptote` binary in the environment.",
        hints=ASY_HINTS,
    )


# ------------------------------------------------------------
# Invocation strategies
# ------------------------------------------------------------
def manim_command(settings: Settings, args: List[str]) -> Tuple[str, List[str]]:
    """
    Pick how to launch Manim.

    An explicit MANIM_BIN wins, then a manim executable inside the bundled
    virtualenv, then ``<python> -m manim``.
    """
    binary = settings.manim_bin
    if not binary:
        venv_bin = Path(settings.manim_venv) / "bin" / "manim"
        if venv_bin.is_file():
            binary = str(venv_bin)
    if binary:
        return binary, args
    return settings.python_bin, ["-m", "manim"] + args


async def asy_command(settings: Settings, args: List[str]) -> Tuple[str, List[str]]:
    """Wrap asy in xvfb-run when available so 3D pictures can render headless."""
    if await command_exists(settings.xvfb_bin, ["--help"], env=settings.tool_env()):
        return settings.xvfb_bin, ["-a", "-s", XVFB_SERVER_ARGS, settings.asy_bin] + args
    return settings.asy_bin, args


# ------------------------------------------------------------
# Shared run/locate/read step
# ------------------------------------------------------------
async def _run_and_collect(
    settings: Settings,
    work: Path,
    command: Tuple[str, List[str]],
    tool_name: str,
    locate: Callable[[Path], Optional[Path]],
    media_type: str,
) -> Artifact:
    cmd, argv = command
    outcome = await run_process(cmd, argv, cwd=work, env=settings.tool_env())

    if isinstance(outcome, SpawnFailed):
        raise SpawnFailure(f"Failed to run {tool_name.lower()}", details=outcome.error)
    if isinstance(outcome, Exited):
        raise ToolExecutionFailure(
            f"{tool_name} render failed",
            code=outcome.returncode,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
        )

    found = await asyncio.to_thread(locate, work)
    if found is None:
        logger.error(f"{tool_name} output not found in {work}")
        raise ArtifactNotFound(stdout=outcome.stdout, stderr=outcome.stderr)

    try:
        data = await asyncio.to_thread(found.read_bytes)
    except OSError as e:
        raise ArtifactUnreadable(details=str(e))

    logger.info(f"{tool_name} produced {found.name} ({len(data)} bytes)")
    return Artifact(data=data, media_type=media_type)


# ------------------------------------------------------------
# Pipelines
# ------------------------------------------------------------
async def render_animation(job: RenderRequest, settings: Settings) -> Artifact:
    """
    Render a Manim scene to mp4 or gif.

    Manim is told to name its output ``out.<format>``; it still nests the
    file under ``media/videos/...`` so the workspace is searched for it.
    """
    if uses_latex(job.code):
        await require_latex_toolchain(settings)

    workspaces = WorkspaceManager("manim-", root=settings.scratch_root)
    async with workspaces.scratch() as work:
        scene_file = work / "scene.py"
        await asyncio.to_thread(scene_file.write_text, job.code, encoding="utf-8")

        args = [
            f"-{job.quality}",
            "--format", job.format,
            "-o", OUTPUT_STEM,
            str(scene_file),
            job.scene,
        ]
        wanted = f"{OUTPUT_STEM}.{job.format}"
        return await _run_and_collect(
            settings,
            work,
            manim_command(settings, args),
            "Manim",
            lambda root: find_file(root, wanted),
            CONTENT_TYPES[job.format],
        )


async def render_vector(job: AsyRequest, settings: Settings) -> Artifact:
    """Compile an Asymptote program to png or svg."""
    await require_asymptote(settings)

    workspaces = WorkspaceManager("asy-", root=settings.scratch_root)
    async with workspaces.scratch() as work:
        source_file = work / "main.asy"
        await asyncio.to_thread(source_file.write_text, job.code, encoding="utf-8")

        args = ["-f", job.format, "-tex", "pdflatex", "-o", OUTPUT_STEM, str(source_file)]
        return await _run_and_collect(
            settings,
            work,
            await asy_command(settings, args),
            "Asymptote",
            lambda root: find_vector_output(root, job.format, OUTPUT_STEM),
            CONTENT_TYPES[job.format],
        )
