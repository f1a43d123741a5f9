"""
Scratch workspaces for render requests.

Each request gets its own randomly named directory under a prefix that
identifies the render kind (``manim-``, ``asy-``). Nothing else ever touches
it, so concurrent renders cannot interfere with each other.
"""

import asyncio
import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

logger = logging.getLogger(__name__)


class WorkspaceManager:
    """Creates and removes per-request temporary directories."""

    def __init__(self, prefix: str, root: Optional[str] = None):
        """
        Args:
            prefix: Fixed directory-name prefix for this render kind
            root: Parent directory; the system temp dir when None
        """
        self.prefix = prefix
        self.root = root

    async def acquire(self) -> Path:
        """Create a fresh workspace and return its absolute path."""
        path = await asyncio.to_thread(tempfile.mkdtemp, prefix=self.prefix, dir=self.root)
        logger.debug(f"Acquired workspace {path}")
        return Path(path).resolve()

    async def release(self, path: Union[str, Path]) -> None:
        """Recursively delete a workspace. Failures are logged, never raised."""
        try:
            await asyncio.to_thread(shutil.rmtree, path)
            logger.debug(f"Released workspace {path}")
        except OSError as e:
            logger.warning(f"Failed to remove workspace {path}: {e}")

    @asynccontextmanager
    async def scratch(self) -> AsyncIterator[Path]:
        """Yield a workspace that is released on every exit path."""
        path = await self.acquire()
        try:
            yield path
        finally:
            await self.release(path)
