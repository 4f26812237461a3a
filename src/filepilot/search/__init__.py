"""Bounded, cancellable filesystem search.

Example:
    from filepilot.search import INTERACTIVE, SearchEngine, SearchQuery
    engine = SearchEngine(ignore_patterns=['node_modules/'])
    run = engine.start(SearchQuery(Path.home(), 'report', INTERACTIVE))
    for match in run.iter_matches():
        print(match.file.path)
    print(run.outcome().state)
"""

from .profiles import SearchProfile, INTERACTIVE, EXHAUSTIVE, default_profiles
from .matcher import MatchType, PatternMatcher, fuzzy_score
from .engine import (
    SearchEngine,
    SearchMatch,
    SearchOutcome,
    SearchQuery,
    SearchRun,
    SearchState,
    validate_root,
)

__all__ = [
    'SearchProfile',
    'INTERACTIVE',
    'EXHAUSTIVE',
    'default_profiles',
    'MatchType',
    'PatternMatcher',
    'fuzzy_score',
    'SearchEngine',
    'SearchMatch',
    'SearchOutcome',
    'SearchQuery',
    'SearchRun',
    'SearchState',
    'validate_root',
]
