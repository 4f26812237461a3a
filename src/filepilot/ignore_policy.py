"""Ignore/filter policy for search traversal and content inspection.

Gitignore-style rules gathered from two sources:

  - user-level patterns from the configuration, and
  - project-level patterns from ``.gitignore`` / ``.filepilotignore`` files
    found in each directory the traversal enters.

Rules are evaluated in order (user-level first, then project files from the
outermost directory inward) and the last matching rule wins. A project rule
therefore always overrides a user rule, and a deeper ignore file overrides a
shallower one: the more specific source decides.
"""
from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .observability import get_logger

logger = get_logger(__name__)

PROJECT_IGNORE_FILES = ('.gitignore', '.filepilotignore')


@dataclass(frozen=True)
class IgnoreRule:
    """One parsed ignore pattern.

    ``base`` is the directory the rule is relative to; anchored rules (a
    slash anywhere but the end) only match paths relative to it.
    """
    pattern: str
    base: Path | None = None
    negated: bool = False
    dir_only: bool = False
    anchored: bool = False
    source: str = 'user'

    @classmethod
    def parse(cls, line: str, base: Path | None = None, source: str = 'user') -> 'IgnoreRule | None':
        line = line.rstrip('\n').rstrip()
        if not line or line.startswith('#'):
            return None
        negated = line.startswith('!')
        if negated:
            line = line[1:]
        if line.startswith('\\'):
            line = line[1:]
        dir_only = line.endswith('/')
        line = line.rstrip('/')
        anchored = '/' in line
        line = line.lstrip('/')
        if not line:
            return None
        return cls(
            pattern=line,
            base=base,
            negated=negated,
            dir_only=dir_only,
            anchored=anchored,
            source=source,
        )

    def matches(self, path: Path, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        if self.anchored:
            if self.base is None:
                # user-level anchored rules match a trailing path segment
                return fnmatch.fnmatchcase(path.as_posix(), '*/' + self.pattern.removeprefix('**/'))
            try:
                rel = PurePosixPath(path.relative_to(self.base).as_posix())
            except ValueError:
                return False
            if self.pattern.startswith('**/'):
                tail = self.pattern[3:]
                return fnmatch.fnmatchcase(str(rel), tail) or fnmatch.fnmatchcase(str(rel), '*/' + tail)
            return fnmatch.fnmatchcase(str(rel), self.pattern)
        if self.base is not None and self.base != path and self.base not in path.parents:
            return False
        return fnmatch.fnmatchcase(path.name, self.pattern)


class IgnorePolicy:
    """Predicate deciding whether a path is traversed and inspected.

    Instances are immutable; :meth:`for_directory` returns a child policy
    with that directory's project ignore files appended.
    """

    def __init__(
        self,
        rules: list[IgnoreRule] | tuple[IgnoreRule, ...] = (),
        max_inspect_size: int | None = None,
        enabled: bool = True,
    ):
        self._rules = tuple(rules)
        self.max_inspect_size = max_inspect_size
        self.enabled = enabled

    @classmethod
    def from_patterns(
        cls,
        patterns: list[str],
        max_inspect_size: int | None = None,
        enabled: bool = True,
    ) -> 'IgnorePolicy':
        rules = [r for r in (IgnoreRule.parse(p) for p in patterns) if r is not None]
        return cls(rules, max_inspect_size=max_inspect_size, enabled=enabled)

    @property
    def rules(self) -> tuple[IgnoreRule, ...]:
        return self._rules

    def for_directory(self, directory: Path) -> 'IgnorePolicy':
        """Return a policy extended with ``directory``'s project ignore files."""
        if not self.enabled:
            return self
        extra: list[IgnoreRule] = []
        for filename in PROJECT_IGNORE_FILES:
            ignore_file = directory / filename
            try:
                text = ignore_file.read_text(encoding='utf-8', errors='replace')
            except (FileNotFoundError, NotADirectoryError):
                continue
            except OSError as e:
                logger.debug('ignore_file_unreadable', path=str(ignore_file), error=str(e))
                continue
            for line in text.splitlines():
                rule = IgnoreRule.parse(line, base=directory, source=str(ignore_file))
                if rule is not None:
                    extra.append(rule)
        if not extra:
            return self
        return IgnorePolicy(
            self._rules + tuple(extra),
            max_inspect_size=self.max_inspect_size,
            enabled=self.enabled,
        )

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        """Return True if ``path`` should be skipped (and its subtree pruned)."""
        if not self.enabled:
            return False
        ignored = False
        for rule in self._rules:
            if rule.matches(path, is_dir):
                ignored = not rule.negated
        return ignored

    def should_inspect(self, size: int) -> bool:
        """Return True if a file of ``size`` bytes may have its content read."""
        return self.max_inspect_size is None or size <= self.max_inspect_size
