"""Directory browsing state for the interactive shell."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FileInfo:
    """Metadata for one filesystem entry."""
    path: Path
    name: str
    is_directory: bool
    size: int
    modified: datetime | None = None

    @classmethod
    def from_path(cls, path: Path | str) -> 'FileInfo':
        """Stat ``path`` (following symlinks).

        Raises:
            OSError: If the entry cannot be stat'ed
        """
        path = Path(path)
        st = os.stat(path)
        return cls.from_stat(path, st)

    @classmethod
    def from_stat(cls, path: Path, st: os.stat_result, is_directory: bool | None = None) -> 'FileInfo':
        if is_directory is None:
            is_directory = os.path.isdir(path)
        return cls(
            path=path,
            name=path.name or str(path),
            is_directory=is_directory,
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def to_dict(self) -> dict:
        d: dict = {
            'name': self.name,
            'path': str(self.path),
            'is_dir': self.is_directory,
        }
        if not self.is_directory:
            d['size'] = self.size
        if self.modified is not None:
            d['modified'] = self.modified.isoformat()
        return d


def _sort_key(info: FileInfo) -> tuple[bool, str]:
    return (not info.is_directory, info.name)


class FileExplorer:
    """Current directory plus its sorted listing (directories first)."""

    def __init__(self, path: Path | str = '.'):
        self._current = Path(path).expanduser().resolve(strict=True)
        if not self._current.is_dir():
            raise NotADirectoryError(str(self._current))
        self._files: list[FileInfo] = []
        self.refresh()

    @property
    def current_path(self) -> Path:
        return self._current

    @property
    def files(self) -> list[FileInfo]:
        return list(self._files)

    @staticmethod
    def _list(directory: Path) -> list[FileInfo]:
        """Sorted listing of ``directory``; entries that vanish mid-listing are skipped.

        Raises:
            OSError: If the directory itself cannot be read
        """
        files: list[FileInfo] = []
        with os.scandir(directory) as it:
            for entry in it:
                try:
                    files.append(FileInfo.from_path(Path(entry.path)))
                except OSError as e:
                    # broken symlink or entry removed between scandir and stat
                    logger.debug('explorer_entry_skipped', path=entry.path, error=str(e))
        files.sort(key=_sort_key)
        return files

    def refresh(self) -> None:
        """Re-read the current directory.

        Raises:
            OSError: If the directory is no longer readable
        """
        self._files = self._list(self._current)

    def _enter(self, directory: Path) -> bool:
        try:
            files = self._list(directory)
        except OSError as e:
            logger.info('explorer_enter_failed', path=str(directory), error=str(e))
            return False
        self._current = directory
        self._files = files
        return True

    def navigate_to(self, path: Path | str) -> bool:
        """Enter ``path`` (relative to the current directory).

        Returns False, leaving the state unchanged, when ``path`` is not a
        directory or cannot be listed.
        """
        target = Path(path).expanduser()
        if not target.is_absolute():
            target = self._current / target
        if not target.is_dir():
            return False
        return self._enter(target.resolve())

    def go_up(self) -> bool:
        """Move to the parent directory.

        Returns False at the filesystem root or when the parent cannot be
        listed.
        """
        parent = self._current.parent
        if parent == self._current:
            return False
        return self._enter(parent)

    def find(self, name: str) -> FileInfo | None:
        """Look up an entry of the current listing by name."""
        for info in self._files:
            if info.name == name:
                return info
        return None
