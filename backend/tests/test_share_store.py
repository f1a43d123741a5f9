"""
Unit tests for the share snapshot store.

Tests cover id allocation and id checking on lookup.
"""

import asyncio
import json

import pytest

from edugen.errors import NotFound, ServiceError
from edugen.web import share_store
from edugen.web.share_store import ShareStore


def ids(*values):
    queue = list(values)
    return lambda length=share_store.ID_LENGTH: queue.pop(0)


class TestShareStore:
    """Test ShareStore create/get."""

    def test_taken_id_is_never_overwritten(self, tmp_path, monkeypatch):
        """An id that already has a snapshot is skipped for a fresh one."""
        (tmp_path / "taken.json").write_text('{"md": "first"}', encoding="utf-8")
        monkeypatch.setattr(share_store, "make_id", ids("taken", "fresh"))
        store = ShareStore(str(tmp_path))

        share_id = asyncio.run(store.create({"md": "second"}))

        assert share_id == "fresh"
        assert (tmp_path / "taken.json").read_text(encoding="utf-8") == '{"md": "first"}'
        assert json.loads((tmp_path / "fresh.json").read_text(encoding="utf-8"))["md"] == "second"

    def test_gives_up_after_repeated_collisions(self, tmp_path, monkeypatch):
        (tmp_path / "taken.json").write_text("{}", encoding="utf-8")
        monkeypatch.setattr(share_store, "make_id", lambda length=10: "taken")
        store = ShareStore(str(tmp_path))

        with pytest.raises(ServiceError):
            asyncio.run(store.create({"md": "x"}))
        assert (tmp_path / "taken.json").read_text(encoding="utf-8") == "{}"

    def test_round_trip(self, tmp_path):
        store = ShareStore(str(tmp_path / "shares"))

        share_id = asyncio.run(store.create({"md": "# Notes"}))

        assert len(share_id) == share_store.ID_LENGTH
        assert json.loads(asyncio.run(store.get(share_id)))["md"] == "# Notes"

    def test_trailing_newline_in_id_rejected(self, tmp_path):
        """Only whole-string [a-z0-9] ids reach the filesystem."""
        (tmp_path / "abc\n.json").write_text("{}", encoding="utf-8")
        store = ShareStore(str(tmp_path))

        with pytest.raises(NotFound):
            asyncio.run(store.get("abc\n"))

    def test_path_characters_rejected(self, tmp_path):
        store = ShareStore(str(tmp_path))

        for share_id in ("../secret", "ABC", ""):
            with pytest.raises(NotFound):
                asyncio.run(store.get(share_id))
