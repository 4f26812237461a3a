"""Search profiles: depth, deadline and result budgets as plain data."""
from __future__ import annotations

from dataclasses import dataclass

MiB = 1024 * 1024


@dataclass(frozen=True)
class SearchProfile:
    """Budget for a single search run.

    Profiles are values, not code: adding one means constructing a new
    instance and registering it under a name in the configuration.
    """
    name: str
    max_depth: int
    deadline_seconds: float
    follow_ignore_rules: bool = True
    max_results: int = 1000
    max_file_size: int = 100 * MiB

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError(f'max_depth must be >= 1, got {self.max_depth}')
        if self.deadline_seconds <= 0:
            raise ValueError(f'deadline_seconds must be > 0, got {self.deadline_seconds}')
        if self.max_results < 1:
            raise ValueError(f'max_results must be >= 1, got {self.max_results}')


INTERACTIVE = SearchProfile(
    name='interactive',
    max_depth=4,
    deadline_seconds=10.0,
    max_results=200,
    max_file_size=50 * MiB,
)

EXHAUSTIVE = SearchProfile(
    name='exhaustive',
    max_depth=8,
    deadline_seconds=30.0,
    max_results=1000,
    max_file_size=100 * MiB,
)


def default_profiles() -> dict[str, SearchProfile]:
    return {INTERACTIVE.name: INTERACTIVE, EXHAUSTIVE.name: EXHAUSTIVE}
