"""Process-lifetime table of shared files.

One writer (the UI's share action) and many readers (HTTP handlers running
on the server thread). Writes are serialised by a lock and publish a new
immutable snapshot; reads take whatever snapshot is current without locking,
so a reader never observes a half-inserted entry.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from types import MappingProxyType
from typing import Mapping

from ..observability import get_logger
from .error_codes import ShareNotFoundError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ShareEntry:
    """A registered share. Never mutated after creation."""
    token: str
    path: Path
    created_at: float

    @property
    def name(self) -> str:
        return self.path.name


def new_token() -> str:
    """128-bit random token in printable (hex) form."""
    return uuid.uuid4().hex


class ShareRegistry:
    """Map share tokens to absolute file paths."""

    def __init__(self) -> None:
        self._write_lock = Lock()
        self._entries: Mapping[str, ShareEntry] = MappingProxyType({})
        self._issued: set[str] = set()

    def register(self, path: Path | str) -> str:
        """Register ``path`` and return a fresh token.

        Re-sharing the same path yields a new token; earlier tokens stay valid.
        """
        abs_path = Path(path).expanduser().resolve()
        with self._write_lock:
            token = new_token()
            while token in self._issued:
                token = new_token()
            self._issued.add(token)
            entry = ShareEntry(token=token, path=abs_path, created_at=time.time())
            updated = dict(self._entries)
            updated[token] = entry
            self._entries = MappingProxyType(updated)
        logger.info('share_token_issued', token=token, path=str(abs_path))
        return token

    def resolve(self, token: str) -> ShareEntry:
        """Return the entry for ``token``.

        Raises:
            ShareNotFoundError: If the token was never issued in this process
        """
        entry = self._entries.get(token)
        if entry is None:
            raise ShareNotFoundError(token)
        return entry

    def entries(self) -> list[ShareEntry]:
        """Snapshot of all entries, oldest first."""
        return sorted(self._entries.values(), key=lambda e: e.created_at)

    def clear(self) -> None:
        """Drop every entry at shutdown. Issued tokens are never reissued."""
        with self._write_lock:
            self._entries = MappingProxyType({})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, token: object) -> bool:
        return token in self._entries
