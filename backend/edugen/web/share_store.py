"""
On-disk storage for share snapshots.

A snapshot is the document markdown plus its embedded assets, stored as
``<share_dir>/<id>.json`` under a short random id.
"""

import re
import json
import asyncio
import logging
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import NotFound, ServiceError, ValidationError

logger = logging.getLogger(__name__)

ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
ID_LENGTH = 10
ID_PATTERN = re.compile(r"[a-z0-9]+")
MAX_ID_ATTEMPTS = 5
ASSET_FIELDS = ("images", "videos", "interactive", "sizes")


def make_id(length: int = ID_LENGTH) -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def build_snapshot(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shape a share request body into the stored snapshot.

    Raises:
        ValidationError: If ``md`` is missing or not a string
    """
    md = payload.get("md")
    if not isinstance(md, str):
        raise ValidationError("Missing `md` (string)")

    snapshot: Dict[str, Any] = {"md": md}
    for field in ASSET_FIELDS:
        value = payload.get(field)
        snapshot[field] = value if isinstance(value, dict) else {}
    snapshot["createdAt"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    snapshot["version"] = 1
    return snapshot


class ShareStore:
    """Key -> JSON blob store in a single directory."""

    def __init__(self, root: str):
        self.root = Path(root)

    def _path(self, share_id: str) -> Path:
        return self.root / f"{share_id}.json"

    def _save(self, snapshot: Dict[str, Any]) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        data = json.dumps(snapshot)
        for _ in range(MAX_ID_ATTEMPTS):
            share_id = make_id()
            try:
                with open(self._path(share_id), "x", encoding="utf-8") as f:
                    f.write(data)
            except FileExistsError:
                continue
            return share_id
        raise ServiceError("Could not allocate a share id")

    def _load(self, share_id: str) -> Optional[str]:
        if not ID_PATTERN.fullmatch(share_id):
            return None
        try:
            return self._path(share_id).read_text(encoding="utf-8")
        except OSError:
            return None

    async def create(self, payload: Dict[str, Any]) -> str:
        """Validate and persist a snapshot; returns its id."""
        snapshot = build_snapshot(payload)
        share_id = await asyncio.to_thread(self._save, snapshot)
        logger.info(f"Stored share {share_id}")
        return share_id

    async def get(self, share_id: str) -> str:
        """
        Return the stored JSON text for ``share_id``.

        Raises:
            NotFound: Unknown or malformed id
        """
        data = await asyncio.to_thread(self._load, share_id)
        if data is None:
            raise NotFound("Share not found")
        return data
