"""Cursor-based pagination.

Two opaque cursor kinds are issued:
- Keyset cursors for newest-first listings, encoding the last item's
  ``created_at`` and ``id`` so pages stay stable under concurrent inserts.
- Offset cursors for distance-ordered radius search, where there is no
  stable keyset.

Both are base64url JSON. A cursor is validated before it becomes part of a
cache key.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any

from fastapi import Query


@dataclass
class CursorData:
    """Decoded keyset cursor."""

    created_at: datetime
    id: str

    def as_keyset(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)


def _encode(data: dict[str, Any]) -> str:
    json_bytes = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(json_bytes).decode("ascii").rstrip("=")


def _decode(cursor: str) -> dict[str, Any] | None:
    try:
        # Restore padding
        padded = cursor + "=" * ((4 - len(cursor) % 4) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (ValueError, UnicodeError):
        return None
    return data if isinstance(data, dict) else None


def encode_cursor(created_at: datetime | str, id: str) -> str:
    """Encode a keyset cursor for the last item of a page."""
    if isinstance(created_at, datetime):
        created_at = created_at.isoformat()
    return _encode({"created_at": created_at, "id": id})


def decode_cursor(cursor: str) -> CursorData | None:
    """Decode a keyset cursor. Returns None if the cursor is invalid."""
    data = _decode(cursor)
    if data is None:
        return None
    try:
        return CursorData(
            created_at=datetime.fromisoformat(data["created_at"]),
            id=str(data["id"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


def encode_offset_cursor(offset: int) -> str:
    return _encode({"offset": offset})


def decode_offset_cursor(cursor: str) -> int | None:
    """Decode an offset cursor. Returns None if the cursor is invalid."""
    data = _decode(cursor)
    if data is None:
        return None
    offset = data.get("offset")
    if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
        return None
    return offset


CursorParam = Annotated[
    str | None,
    Query(description="Opaque cursor for pagination continuation"),
]
