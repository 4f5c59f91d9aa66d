"""Display timecodes for story rows."""

from __future__ import annotations


def format_timecode(seconds: float) -> str:
    """Format a non-negative offset in seconds as ``HH:MM:SS.mmm``.

    Milliseconds are rounded to the nearest unit, carrying into the seconds
    field (``59.9996`` becomes ``00:01:00.000``). Hours are not wrapped.
    """
    total_ms = int(round(seconds * 1000))
    total_seconds, millis = divmod(total_ms, 1000)
    minutes, secs = divmod(total_seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"
