"""Text-versus-binary detection from a file's first bytes."""
from __future__ import annotations

from pathlib import Path

SNIFF_BYTES = 8192
MAX_NON_PRINTABLE_RATIO = 0.05


def looks_like_text(sample: bytes) -> bool:
    """Printable-text heuristic over the first bytes of a file."""
    if not sample:
        return True
    if b'\x00' in sample:
        return False
    try:
        text = sample.decode('utf-8')
    except UnicodeDecodeError as e:
        # A multi-byte character cut off at the sample boundary is still text.
        if e.start < len(sample) - 4:
            return False
        text = sample[:e.start].decode('utf-8')
    if not text:
        return True
    non_printable = sum(1 for ch in text if not ch.isprintable() and ch not in '\r\n\t\f\b')
    return non_printable / len(text) <= MAX_NON_PRINTABLE_RATIO


def read_sniff_sample(path: Path | str) -> bytes:
    with open(path, 'rb') as f:
        return f.read(SNIFF_BYTES)
