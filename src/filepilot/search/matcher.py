"""Scoring of one path against a search pattern.

Order of precedence for a single entry (first hit wins):

  1. fuzzy subsequence on the file name      -> FILE_NAME, fuzzy score
     (plus a flat bonus when it is also a plain substring)
  2. glob, when the pattern has wildcards    -> FILE_NAME / FILE_PATH
  3. regex on the full path                  -> FILE_PATH, 50
  4. case-insensitive substring on the path  -> FILE_PATH, 30
"""
from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from enum import Enum

NAME_SUBSTRING_SCORE = 40
PATH_SUBSTRING_SCORE = 30
REGEX_SCORE = 50
GLOB_NAME_SCORE = 45
GLOB_PATH_SCORE = 35

_GLOB_CHARS = frozenset('*?[')
_SEPARATORS = frozenset('/\\_-. ')

# Fuzzy scoring weights
_MATCH = 16
_CONSECUTIVE = 12
_BOUNDARY = 8
_FIRST_CHAR = 6
_GAP = 2


class MatchType(str, Enum):
    FILE_NAME = 'file_name'
    FILE_PATH = 'file_path'
    CONTENT = 'content'


def fuzzy_score(text: str, pattern: str) -> int | None:
    """Score ``pattern`` as a case-insensitive subsequence of ``text``.

    Returns None when some pattern character does not occur in order.
    Consecutive runs and characters at word boundaries score higher; gaps
    between matched characters cost a point each.
    """
    if not pattern:
        return None
    haystack = text.lower()
    needle = pattern.lower()

    score = 0
    prev = -1
    pos = 0
    for ch in needle:
        idx = haystack.find(ch, pos)
        if idx < 0:
            return None
        score += _MATCH
        if idx == 0:
            score += _FIRST_CHAR
        elif text[idx - 1] in _SEPARATORS or (text[idx - 1].islower() and text[idx].isupper()):
            score += _BOUNDARY
        if prev >= 0:
            if idx == prev + 1:
                score += _CONSECUTIVE
            else:
                score -= _GAP * (idx - prev - 1)
        prev = idx
        pos = idx + 1
    return max(score, 1)


@dataclass(frozen=True)
class MatchScore:
    score: int
    match_type: MatchType


class PatternMatcher:
    """Precompiled matcher for one query pattern."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.lowered = pattern.lower()
        self.is_glob = any(ch in _GLOB_CHARS for ch in pattern)
        try:
            self.regex: re.Pattern[str] | None = re.compile(pattern)
        except re.error:
            self.regex = None

    def score(self, name: str, path: str) -> MatchScore | None:
        """Score an entry by its base name and full path, or None."""
        if not self.pattern:
            return None
        name_lower = name.lower()

        fuzzy = fuzzy_score(name, self.pattern)
        if fuzzy is not None:
            if self.lowered in name_lower:
                fuzzy += NAME_SUBSTRING_SCORE
            return MatchScore(fuzzy, MatchType.FILE_NAME)

        if self.is_glob:
            if fnmatch.fnmatch(name_lower, self.lowered):
                return MatchScore(GLOB_NAME_SCORE, MatchType.FILE_NAME)
            if fnmatch.fnmatch(path.lower(), self.lowered):
                return MatchScore(GLOB_PATH_SCORE, MatchType.FILE_PATH)

        if self.regex is not None and self.regex.search(path):
            return MatchScore(REGEX_SCORE, MatchType.FILE_PATH)

        if self.lowered in path.lower():
            return MatchScore(PATH_SUBSTRING_SCORE, MatchType.FILE_PATH)
        return None

    def search_line(self, line: str) -> bool:
        """Content match: case-insensitive substring, then regex."""
        if self.lowered and self.lowered in line.lower():
            return True
        return self.regex is not None and self.regex.search(line) is not None
