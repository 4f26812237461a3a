"""Orchestrator tests: background sharing and superseded searches."""
import time

import pytest

from filepilot.api.error_codes import SearchRootError, UnknownProfileError
from filepilot.orchestrator import (
    Orchestrator,
    SearchFinished,
    SearchPartial,
    ServerReady,
    ShareCompleted,
    ShareFailed,
)
from filepilot.search import SearchState


def _collect(orchestrator, until, timeout=10.0):
    """Poll events until ``until(event)`` holds for one of them."""
    events = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        batch = orchestrator.poll_events(timeout=0.1)
        events.extend(batch)
        if any(until(e) for e in batch):
            return events
    pytest.fail(f'expected event not delivered; got {events!r}')


@pytest.fixture
def orchestrator(config, free_block):
    config.port_start = free_block
    config.port_count = 4
    orch = Orchestrator(config)
    yield orch
    orch.shutdown()


@pytest.fixture
def big_tree(workspace_root):
    for i in range(40):
        d = workspace_root / f'dir{i:02d}'
        d.mkdir()
        for j in range(25):
            (d / f'item{j}.txt').write_text('x')
    (workspace_root / 'dir07' / 'unique-needle.txt').write_text('x')
    return workspace_root


class TestOrchestratorShare:

    def test_first_share_reports_server_ready(self, orchestrator, workspace_root, free_block):
        f = workspace_root / 'a.txt'
        f.write_text('a')
        result = orchestrator.share(f).result(timeout=15)
        assert result is not None
        events = _collect(orchestrator, lambda e: isinstance(e, ShareCompleted))
        assert isinstance(events[0], ServerReady)
        assert events[0].port == free_block
        completed = [e for e in events if isinstance(e, ShareCompleted)]
        assert completed[0].url == result.url

    def test_second_share_has_no_server_ready(self, orchestrator, workspace_root):
        f = workspace_root / 'a.txt'
        f.write_text('a')
        orchestrator.share(f).result(timeout=15)
        orchestrator.poll_events(timeout=0.1)
        orchestrator.share(f).result(timeout=15)
        events = _collect(orchestrator, lambda e: isinstance(e, ShareCompleted))
        assert not any(isinstance(e, ServerReady) for e in events)

    def test_share_failure_is_an_event(self, orchestrator, workspace_root):
        assert orchestrator.share(workspace_root / 'missing.txt').result(timeout=15) is None
        events = _collect(orchestrator, lambda e: isinstance(e, ShareFailed))
        failed = [e for e in events if isinstance(e, ShareFailed)][0]
        assert failed.error_code == 'invalid_share_path'


class TestOrchestratorSearch:

    def test_search_delivers_results(self, orchestrator, big_tree):
        run_id = orchestrator.run_search('unique-needle', big_tree, profile='exhaustive')
        events = _collect(orchestrator, lambda e: isinstance(e, SearchFinished))
        finished = [e for e in events if isinstance(e, SearchFinished)][0]
        assert finished.run_id == run_id
        assert finished.outcome.state is SearchState.COMPLETED
        assert [m.file.name for m in finished.outcome.matches] == ['unique-needle.txt']
        partial_names = [m.file.name for e in events if isinstance(e, SearchPartial) for m in e.matches]
        assert 'unique-needle.txt' in partial_names

    def test_new_search_suppresses_previous_results(self, orchestrator, big_tree):
        first = orchestrator.run_search('item', big_tree, profile='exhaustive')
        second = orchestrator.run_search('unique-needle', big_tree, profile='exhaustive')
        assert second != first
        assert orchestrator.current_run_id == second

        events = _collect(
            orchestrator,
            lambda e: isinstance(e, SearchFinished) and e.run_id == second,
        )
        search_events = [e for e in events if isinstance(e, (SearchPartial, SearchFinished))]
        assert all(e.run_id == second for e in search_events)
        for e in search_events:
            if isinstance(e, SearchPartial):
                assert all(m.file.name == 'unique-needle.txt' for m in e.matches)

        # stragglers from the first run never surface later either
        time.sleep(0.2)
        assert all(getattr(e, 'run_id', second) == second for e in orchestrator.poll_events())

    def test_cancel_search(self, orchestrator, big_tree):
        orchestrator.run_search('item', big_tree, profile='exhaustive')
        orchestrator.cancel_search()
        assert orchestrator.current_run_id is None
        time.sleep(0.2)
        assert not any(
            isinstance(e, (SearchPartial, SearchFinished)) for e in orchestrator.poll_events()
        )

    def test_unknown_profile(self, orchestrator, big_tree):
        with pytest.raises(UnknownProfileError):
            orchestrator.run_search('x', big_tree, profile='turbo')

    def test_bad_root(self, orchestrator, workspace_root):
        with pytest.raises(SearchRootError):
            orchestrator.run_search('x', workspace_root / 'nope')

    def test_poll_never_blocks_without_timeout(self, orchestrator):
        started = time.monotonic()
        assert orchestrator.poll_events() == []
        assert time.monotonic() - started < 0.5
