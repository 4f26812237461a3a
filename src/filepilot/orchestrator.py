"""Coordination between the interactive loop and background work.

The interactive loop never blocks: sharing and searching run on a worker
pool and report back through one event queue, drained with
:meth:`Orchestrator.poll_events`. Search events carry their run id and
events from a superseded run are dropped, so once a new search starts no
match from the previous one is delivered.
"""
from __future__ import annotations

import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from .api.config import FilePilotConfig
from .api.error_codes import FilePilotError
from .api.share_server import ShareResult, ShareServer
from .observability import get_logger
from .search import SearchEngine, SearchMatch, SearchOutcome, SearchQuery

logger = get_logger(__name__)

PARTIAL_BATCH_SIZE = 32
REQUESTER = 'interactive'


@dataclass(frozen=True)
class ServerReady:
    port: int
    base_url: str


@dataclass(frozen=True)
class ShareCompleted:
    path: Path
    url: str
    token: str


@dataclass(frozen=True)
class ShareFailed:
    path: Path
    error_code: str
    message: str


@dataclass(frozen=True)
class SearchPartial:
    run_id: int
    matches: list[SearchMatch] = field(default_factory=list)


@dataclass(frozen=True)
class SearchFinished:
    run_id: int
    outcome: SearchOutcome


@dataclass(frozen=True)
class SearchFailed:
    run_id: int
    error_code: str
    message: str


Event = Union[ServerReady, ShareCompleted, ShareFailed, SearchPartial, SearchFinished, SearchFailed]
_SEARCH_EVENTS = (SearchPartial, SearchFinished, SearchFailed)


class Orchestrator:
    """Entry points for the UI: ``share(path)`` and ``run_search(...)``.

    Args:
        config: Shared configuration
        server: Share server; built from ``config`` when omitted
        engine: Search engine; built from ``config`` when omitted
        max_workers: Size of the worker pool
    """

    def __init__(
        self,
        config: FilePilotConfig,
        server: ShareServer | None = None,
        engine: SearchEngine | None = None,
        max_workers: int = 2,
    ):
        self.config = config
        self.server = server or ShareServer(config)
        self.engine = engine or SearchEngine(ignore_patterns=config.ignore_patterns)
        self._events: queue.Queue[Event] = queue.Queue()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='filepilot-worker')
        self._lock = threading.Lock()
        self._current_run_id: int | None = None
        self._closed = False

    @property
    def current_run_id(self) -> int | None:
        return self._current_run_id

    # ── Sharing ──

    def share(self, path: Path | str) -> Future:
        """Share ``path`` in the background.

        The result arrives as a ShareCompleted or ShareFailed event (and, on
        the first share, a ServerReady event). The returned future resolves
        to the ShareResult, or None on failure.
        """
        return self._executor.submit(self._share, Path(path))

    def _share(self, path: Path) -> ShareResult | None:
        was_running = self.server.running
        try:
            result = self.server.share(path)
        except FilePilotError as e:
            logger.warning('share_failed', path=str(path), error_code=e.code.value, message=e.message)
            self._events.put(ShareFailed(path=path, error_code=e.code.value, message=e.message))
            return None
        if not was_running:
            self._events.put(ServerReady(port=result.port, base_url=self.server.base_url))
        self._events.put(ShareCompleted(path=result.path, url=result.url, token=result.token))
        return result

    # ── Searching ──

    def run_search(
        self,
        pattern: str,
        root: Path | str,
        profile: str | None = None,
        match_contents: bool = False,
    ) -> int:
        """Start a search, superseding any search still running.

        Returns:
            The run id carried by this search's events.

        Raises:
            UnknownProfileError: If ``profile`` is not configured
            SearchRootError: If ``root`` is missing or not a directory
        """
        query = SearchQuery(
            root=Path(root),
            pattern=pattern,
            profile=self.config.get_profile(profile),
            match_contents=match_contents,
        )
        with self._lock:
            run = self.engine.start(query, requester=REQUESTER)
            self._current_run_id = run.run_id
        self._executor.submit(self._search, run)
        return run.run_id

    def cancel_search(self) -> bool:
        with self._lock:
            self._current_run_id = None
        return self.engine.cancel(requester=REQUESTER)

    def _search(self, run) -> None:
        batch: list[SearchMatch] = []
        try:
            for match in run.iter_matches():
                batch.append(match)
                if len(batch) >= PARTIAL_BATCH_SIZE:
                    self._publish_partial(run, batch)
                    batch = []
            if batch:
                self._publish_partial(run, batch)
        except FilePilotError as e:
            self._events.put(SearchFailed(run_id=run.run_id, error_code=e.code.value, message=e.message))
            return
        except Exception:
            logger.exception('search_run_crashed', run_id=run.run_id)
            self._events.put(SearchFailed(run_id=run.run_id, error_code='internal_error', message='search crashed'))
            return
        self._events.put(SearchFinished(run_id=run.run_id, outcome=run.outcome()))

    def _publish_partial(self, run, batch: list[SearchMatch]) -> None:
        if run.cancelled:
            return
        self._events.put(SearchPartial(run_id=run.run_id, matches=batch))

    # ── Event delivery ──

    def _is_stale(self, event: Event) -> bool:
        return isinstance(event, _SEARCH_EVENTS) and event.run_id != self._current_run_id

    def poll_events(self, timeout: float | None = None) -> list[Event]:
        """Drain pending events without blocking (or waiting up to ``timeout``
        for the first one). Events from superseded searches are dropped."""
        events: list[Event] = []
        try:
            if timeout:
                events.append(self._events.get(timeout=timeout))
            while True:
                events.append(self._events.get_nowait())
        except queue.Empty:
            pass
        return [e for e in events if not self._is_stale(e)]

    def shutdown(self) -> None:
        """Cancel searches, stop the server and the worker pool."""
        if self._closed:
            return
        self._closed = True
        self.engine.cancel(requester=REQUESTER)
        self._executor.shutdown(wait=True, cancel_futures=True)
        self.server.stop()
        logger.info('orchestrator_stopped')

    def __enter__(self) -> 'Orchestrator':
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
