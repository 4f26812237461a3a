"""HTTP single-range resolution against a known content length.

Supported forms: ``bytes=start-end``, ``bytes=start-`` and ``bytes=-N``.
When several ranges are requested only the first is honoured. A header with
a unit other than ``bytes`` is ignored (the full body is served). Anything
else that does not fit the content raises RangeNotSatisfiableError carrying
the real length.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from .error_codes import RangeNotSatisfiableError

_RANGE_SPEC = re.compile(r'^\s*(\d*)\s*-\s*(\d*)\s*$')


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte window; always satisfies 0 <= start <= end < length."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total: int) -> str:
        return f'bytes {self.start}-{self.end}/{total}'


def unsatisfiable_content_range(total: int) -> str:
    return f'bytes */{total}'


def resolve_range(header: str | None, length: int) -> ByteRange | None:
    """Resolve a Range header value against ``length``.

    Returns:
        None when the whole body should be served (no header, or a unit
        other than bytes), otherwise the single ByteRange to send.

    Raises:
        RangeNotSatisfiableError: start > end, start >= length, a zero
            suffix, or an unparsable byte-range-spec
    """
    if header is None or not header.strip():
        return None

    unit, sep, specs = header.strip().partition('=')
    if not sep or unit.strip().lower() != 'bytes':
        return None

    first = specs.split(',')[0]
    match = _RANGE_SPEC.match(first)
    if match is None:
        raise RangeNotSatisfiableError(header, length)
    start_raw, end_raw = match.groups()

    if not start_raw and not end_raw:
        raise RangeNotSatisfiableError(header, length)

    if not start_raw:
        # Suffix form: the last N bytes.
        suffix = int(end_raw)
        if suffix == 0 or length == 0:
            raise RangeNotSatisfiableError(header, length)
        start = max(length - suffix, 0)
        return ByteRange(start=start, end=length - 1)

    start = int(start_raw)
    if start >= length:
        raise RangeNotSatisfiableError(header, length)

    if not end_raw:
        return ByteRange(start=start, end=length - 1)

    end = int(end_raw)
    if start > end:
        raise RangeNotSatisfiableError(header, length)
    # A last-byte-pos past the end means "to the end of the representation".
    return ByteRange(start=start, end=min(end, length - 1))
