"""
Unit tests for scratch workspaces.

Tests cover creation under the render-kind prefix and removal on every
exit path.
"""

import asyncio

import pytest

from edugen.render.workspace import WorkspaceManager


class TestWorkspaceManager:
    """Test workspace acquisition and release."""

    def test_acquire_creates_prefixed_directory(self, scratch_root):
        """Workspaces live under the configured root with the kind prefix."""
        manager = WorkspaceManager("manim-", root=str(scratch_root))
        path = asyncio.run(manager.acquire())

        assert path.is_dir()
        assert path.is_absolute()
        assert path.parent == scratch_root.resolve()
        assert path.name.startswith("manim-")

    def test_workspaces_are_unique(self, scratch_root):
        manager = WorkspaceManager("asy-", root=str(scratch_root))

        async def acquire_many():
            return [await manager.acquire() for _ in range(5)]

        paths = asyncio.run(acquire_many())
        assert len(set(paths)) == 5

    def test_release_removes_contents(self, scratch_root):
        """Release deletes the directory and everything in it."""
        manager = WorkspaceManager("manim-", root=str(scratch_root))
        path = asyncio.run(manager.acquire())
        (path / "media" / "videos").mkdir(parents=True)
        (path / "media" / "videos" / "out.mp4").write_bytes(b"data")

        asyncio.run(manager.release(path))
        assert not path.exists()

    def test_release_swallows_errors(self, scratch_root):
        """Releasing a directory that is already gone does not raise."""
        manager = WorkspaceManager("manim-", root=str(scratch_root))
        asyncio.run(manager.release(scratch_root / "never-existed"))

    def test_scratch_releases_on_success(self, scratch_root):
        manager = WorkspaceManager("asy-", root=str(scratch_root))

        async def use():
            async with manager.scratch() as work:
                (work / "main.asy").write_text("draw((0,0)--(1,1));")
                return work

        work = asyncio.run(use())
        assert not work.exists()
        assert list(scratch_root.iterdir()) == []

    def test_scratch_releases_on_exception(self, scratch_root):
        """The workspace is removed even when the body raises."""
        manager = WorkspaceManager("asy-", root=str(scratch_root))

        async def fail():
            async with manager.scratch():
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(fail())
        assert list(scratch_root.iterdir()) == []
