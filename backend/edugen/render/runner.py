"""
Spawning external render tools.

``run_process`` never raises for a tool that is missing or fails: it returns
exactly one ``ProcessOutcome`` describing what happened, with the captured
output attached so callers can hand it back to the user verbatim.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class Succeeded:
    stdout: str
    stderr: str


@dataclass(frozen=True)
class Exited:
    """The process ran and exited with a non-zero code."""
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class SpawnFailed:
    """The process could not be started."""
    error: str


ProcessOutcome = Union[Succeeded, Exited, SpawnFailed]


async def _drain(stream: Optional[asyncio.StreamReader]) -> bytes:
    buffer = bytearray()
    if stream is None:
        return bytes(buffer)
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        if not chunk:
            return bytes(buffer)
        buffer.extend(chunk)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


async def run_process(
    command: str,
    args: Sequence[str],
    cwd: Union[str, Path],
    env: Optional[Mapping[str, str]] = None,
) -> ProcessOutcome:
    """
    Run ``command`` with ``args`` inside ``cwd`` and wait for it to exit.

    Args:
        command: Executable name or path
        args: Argument vector (no shell is involved)
        cwd: Working directory, normally the request's workspace
        env: Full environment for the child; inherits ours when None

    Returns:
        Succeeded, Exited or SpawnFailed
    """
    logger.info(f"Running: {command} {' '.join(args)}")
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=str(cwd),
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Failed to spawn {command!r}: {e}")
        return SpawnFailed(error=str(e))

    try:
        stdout, stderr = await asyncio.gather(_drain(proc.stdout), _drain(proc.stderr))
        returncode = await proc.wait()
    except asyncio.CancelledError:
        # Kill the tool before its workspace is removed.
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
        raise

    if returncode != 0:
        logger.error(f"{command} exited with {returncode}")
        return Exited(returncode=returncode, stdout=_decode(stdout), stderr=_decode(stderr))
    return Succeeded(stdout=_decode(stdout), stderr=_decode(stderr))
