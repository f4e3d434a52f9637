"""Helpers for the "MM:SS" offsets carried by every segment."""

from __future__ import annotations

import re

_TIMECODE_RE = re.compile(r"^(\d{1,3}):([0-5]\d)$")

ZERO_TIMECODE = "00:00"


def is_valid_timecode(value: str) -> bool:
    """True for "MM:SS" strings (minutes may exceed 59 for long media)."""
    return bool(_TIMECODE_RE.match(value or ""))


def parse_timecode(value: str) -> int:
    """Convert "MM:SS" to whole seconds; unparseable strings map to 0."""
    parts = (value or "").split(":")
    if len(parts) != 2:
        return 0
    try:
        return int(parts[0]) * 60 + int(parts[1])
    except ValueError:
        return 0


def format_timecode(seconds: float) -> str:
    """Format a non-negative offset in seconds as zero-padded "MM:SS"."""
    total = max(0, int(seconds))
    return "{:02d}:{:02d}".format(total // 60, total % 60)


def normalize_timecode(value: str) -> str:
    """Return ``value`` if it is valid "MM:SS", otherwise "00:00".

    Also accepts "H:MM:SS" and bare seconds, which some model responses
    produce, and folds them into minutes.
    """
    value = (value or "").strip()
    if is_valid_timecode(value):
        return value
    parts = value.split(":")
    try:
        if len(parts) == 3:
            return format_timecode(int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2]))
        if len(parts) == 1 and parts[0]:
            return format_timecode(float(parts[0]))
    except (ValueError, OverflowError):
        pass
    return ZERO_TIMECODE
