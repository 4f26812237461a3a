"""Bounded, cancellable filesystem search.

A run walks the tree depth-first with an explicit stack, yielding matches as
it finds them. At every directory boundary, and every
``CHECK_INTERVAL`` entries inside a large directory, it checks:

  - cancellation -> CANCELLED, stop, partial matches are discarded
  - deadline     -> TIMED_OUT, stop, matches so far are kept (truncated)

Ignored directories are pruned without being entered. Entries of the search
root are at depth 1; nothing deeper than the profile's ``max_depth`` is
visited.

States:
  IDLE -> RUNNING -> COMPLETED | CANCELLED | TIMED_OUT
"""
from __future__ import annotations

import itertools
import os
import stat
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator

from ..api.error_codes import SearchRootError
from ..explorer import FileInfo
from ..ignore_policy import IgnorePolicy
from ..observability import get_logger
from ..observability.metrics import SEARCH_RUN_DURATION_SECONDS, SEARCH_RUNS_TOTAL
from ..sniffing import SNIFF_BYTES, looks_like_text
from .matcher import MatchType, PatternMatcher
from .profiles import SearchProfile

logger = get_logger(__name__)

CHECK_INTERVAL = 256
MAX_LINE_LENGTH = 500

Clock = Callable[[], float]


class SearchState(str, Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    TIMED_OUT = 'timed_out'


TERMINAL_STATES = frozenset({SearchState.COMPLETED, SearchState.CANCELLED, SearchState.TIMED_OUT})


@dataclass(frozen=True)
class SearchQuery:
    root: Path
    pattern: str
    profile: SearchProfile
    match_contents: bool = False


@dataclass(frozen=True)
class SearchMatch:
    """A single search hit."""
    file: FileInfo
    score: int
    match_type: MatchType
    depth: int
    line_number: int | None = None
    line: str | None = None

    def to_dict(self) -> dict:
        d = {
            'path': str(self.file.path),
            'name': self.file.name,
            'is_dir': self.file.is_directory,
            'score': self.score,
            'match_type': self.match_type.value,
            'depth': self.depth,
        }
        if self.line_number is not None:
            d['line_number'] = self.line_number
            d['line'] = self.line
        return d


def rank(matches: list[SearchMatch]) -> list[SearchMatch]:
    """Best score first; ties broken by path for a stable order."""
    return sorted(matches, key=lambda m: (-m.score, str(m.file.path)))


@dataclass
class SearchOutcome:
    """Terminal summary of a run."""
    run_id: int
    state: SearchState
    matches: list[SearchMatch] = field(default_factory=list)
    truncated: bool = False
    visited: int = 0
    elapsed: float = 0.0

    @property
    def is_complete(self) -> bool:
        return self.state == SearchState.COMPLETED and not self.truncated

    def to_dict(self) -> dict:
        return {
            'run_id': self.run_id,
            'state': self.state.value,
            'matches': [m.to_dict() for m in self.matches],
            'truncated': self.truncated,
            'visited': self.visited,
            'elapsed': round(self.elapsed, 3),
        }


def validate_root(root: Path | str) -> Path:
    """Return the resolved search root.

    Raises:
        SearchRootError: If the root is missing or not a directory
    """
    path = Path(root).expanduser()
    if not path.exists():
        raise SearchRootError(str(path), 'does not exist')
    if not path.is_dir():
        raise SearchRootError(str(path), 'is not a directory')
    return path.resolve()


class SearchRun:
    """One traversal for one query.

    ``iter_matches()`` may be consumed once. Another thread may call
    :meth:`cancel` at any time; the walk notices at its next check.
    """

    def __init__(
        self,
        run_id: int,
        query: SearchQuery,
        ignore_patterns: list[str] | None = None,
        clock: Clock = time.monotonic,
    ):
        self.run_id = run_id
        self.query = query
        self._clock = clock
        self._cancel = threading.Event()
        self._matches: list[SearchMatch] = []
        self._visited = 0
        self._started_at: float | None = None
        self._deadline: float | None = None
        self._elapsed = 0.0
        self.state = SearchState.IDLE
        self._policy = IgnorePolicy.from_patterns(
            ignore_patterns or [],
            max_inspect_size=query.profile.max_file_size,
            enabled=query.profile.follow_ignore_rules,
        )
        self._matcher = PatternMatcher(query.pattern)

    @property
    def profile(self) -> SearchProfile:
        return self.query.profile

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Request cooperative cancellation."""
        self._cancel.set()

    # ── Budget checks ──

    def _should_stop(self) -> bool:
        if self._cancel.is_set():
            self.state = SearchState.CANCELLED
            return True
        if self._clock() >= self._deadline:
            self.state = SearchState.TIMED_OUT
            return True
        return False

    # ── Traversal ──

    def iter_matches(self) -> Iterator[SearchMatch]:
        """Walk the tree and yield matches as they are found.

        Raises:
            SearchRootError: If the root is missing or not a directory
            RuntimeError: If this run was already consumed
        """
        if self.state is not SearchState.IDLE:
            raise RuntimeError(f'Search run {self.run_id} already {self.state.value}')
        root = validate_root(self.query.root)

        self.state = SearchState.RUNNING
        self._started_at = self._clock()
        self._deadline = self._started_at + self.profile.deadline_seconds
        logger.debug(
            'search_run_started',
            run_id=self.run_id,
            root=str(root),
            pattern=self.query.pattern,
            profile=self.profile.name,
        )

        try:
            yield from self._walk(root)
            if self.state is SearchState.RUNNING:
                self.state = SearchState.COMPLETED
        finally:
            if self.state is SearchState.RUNNING:
                # consumer abandoned the generator
                self.state = SearchState.CANCELLED
            self._finish()

    def _walk(self, root: Path) -> Iterator[SearchMatch]:
        max_depth = self.profile.max_depth
        stack: list[tuple[Path, int, IgnorePolicy]] = [(root, 1, self._policy.for_directory(root))]

        while stack:
            if self._should_stop():
                return
            directory, depth, policy = stack.pop()
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.debug('search_dir_unreadable', path=str(directory), error=str(e))
                continue

            subdirs: list[tuple[Path, int, IgnorePolicy]] = []
            for i, entry in enumerate(entries):
                if i and i % CHECK_INTERVAL == 0 and self._should_stop():
                    return
                self._visited += 1
                path = Path(entry.path)
                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    continue
                if policy.is_ignored(path, is_dir):
                    continue

                match = self._match_entry(entry, path, is_dir, depth, policy)
                if self.state is not SearchState.RUNNING:
                    return
                if match is not None:
                    if self._cancel.is_set():
                        self.state = SearchState.CANCELLED
                        return
                    self._matches.append(match)
                    yield match

                if is_dir and depth < max_depth:
                    subdirs.append((path, depth + 1, policy.for_directory(path)))

            stack.extend(reversed(subdirs))

    def _match_entry(
        self,
        entry: os.DirEntry,
        path: Path,
        is_dir: bool,
        depth: int,
        policy: IgnorePolicy,
    ) -> SearchMatch | None:
        scored = self._matcher.score(entry.name, str(path))
        if scored is None and (is_dir or not self.query.match_contents):
            return None
        try:
            st = entry.stat(follow_symlinks=False)
        except OSError:
            return None
        info = FileInfo.from_stat(path, st, is_directory=is_dir)
        if scored is not None:
            return SearchMatch(file=info, score=scored.score, match_type=scored.match_type, depth=depth)

        size = self._regular_size(path, st)
        # FIFOs and devices block or never end on read
        if size is None or not policy.should_inspect(size):
            return None
        if self._should_stop():
            return None
        hit = self._scan_contents(path)
        if hit is None:
            return None
        line_number, line = hit
        return SearchMatch(
            file=info,
            score=20,
            match_type=MatchType.CONTENT,
            depth=depth,
            line_number=line_number,
            line=line,
        )

    @staticmethod
    def _regular_size(path: Path, st: os.stat_result) -> int | None:
        """Size of the regular file behind ``path``, or None for anything else."""
        if stat.S_ISLNK(st.st_mode):
            try:
                st = os.stat(path)
            except OSError:
                return None
        if not stat.S_ISREG(st.st_mode):
            return None
        return st.st_size

    def _scan_contents(self, path: Path) -> tuple[int, str] | None:
        """First matching line of a text file, or None."""
        try:
            with open(path, 'rb') as f:
                if not looks_like_text(f.read(SNIFF_BYTES)):
                    return None
                f.seek(0)
                for number, raw in enumerate(f, start=1):
                    line = raw.decode('utf-8', errors='replace').rstrip('\r\n')
                    if self._matcher.search_line(line):
                        return number, line[:MAX_LINE_LENGTH]
        except OSError as e:
            logger.debug('search_file_unreadable', path=str(path), error=str(e))
        return None

    def _finish(self) -> None:
        self._elapsed = self._clock() - self._started_at
        SEARCH_RUNS_TOTAL.labels(state=self.state.value, profile=self.profile.name).inc()
        SEARCH_RUN_DURATION_SECONDS.labels(profile=self.profile.name).observe(max(self._elapsed, 0.0))
        logger.info(
            'search_run_finished',
            run_id=self.run_id,
            state=self.state.value,
            matches=len(self._matches),
            visited=self._visited,
            elapsed=round(self._elapsed, 3),
        )

    def outcome(self) -> SearchOutcome:
        """Summarise the run.

        Matches are ranked and capped at ``max_results``. A cancelled run
        reports no matches.
        """
        if self.state is SearchState.CANCELLED:
            matches: list[SearchMatch] = []
            truncated = True
        else:
            ranked = rank(self._matches)
            matches = ranked[:self.profile.max_results]
            truncated = self.state is SearchState.TIMED_OUT or len(ranked) > len(matches)
        return SearchOutcome(
            run_id=self.run_id,
            state=self.state,
            matches=matches,
            truncated=truncated,
            visited=self._visited,
            elapsed=self._elapsed,
        )


class SearchEngine:
    """Start search runs, keeping at most one active run per requester."""

    def __init__(
        self,
        ignore_patterns: list[str] | None = None,
        clock: Clock = time.monotonic,
    ):
        self.ignore_patterns = list(ignore_patterns or [])
        self._clock = clock
        self._lock = threading.Lock()
        self._active: dict[str, SearchRun] = {}
        self._ids = itertools.count(1)

    def start(self, query: SearchQuery, requester: str = 'default') -> SearchRun:
        """Cancel ``requester``'s previous run and create a new one.

        The returned run is IDLE until its ``iter_matches()`` is consumed.

        Raises:
            SearchRootError: If the query root is missing or not a directory
        """
        validate_root(query.root)
        with self._lock:
            previous = self._active.get(requester)
            if previous is not None and not previous.done:
                previous.cancel()
                logger.debug('search_run_superseded', run_id=previous.run_id, requester=requester)
            run = SearchRun(next(self._ids), query, self.ignore_patterns, clock=self._clock)
            self._active[requester] = run
        return run

    def cancel(self, requester: str = 'default') -> bool:
        """Cancel ``requester``'s active run. Returns True if one was running."""
        with self._lock:
            run = self._active.get(requester)
        if run is None or run.done:
            return False
        run.cancel()
        return True

    def active_run(self, requester: str = 'default') -> SearchRun | None:
        with self._lock:
            return self._active.get(requester)

    def search(self, query: SearchQuery, requester: str = 'default') -> SearchOutcome:
        """Run a query to its terminal state on the calling thread."""
        run = self.start(query, requester)
        for _ in run.iter_matches():
            pass
        return run.outcome()
