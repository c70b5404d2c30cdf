"""Display formatting for remaining time and block windows."""

from datetime import datetime
from typing import Optional


def format_remaining(ms: Optional[int]) -> str:
    """
    Format a millisecond duration for status lines.

    Examples:
        >>> format_remaining(45_000)
        '45s'
        >>> format_remaining(125_000)
        '2m 5s'
    """
    if ms is None:
        return ""
    # Truncate at display time only
    total_seconds = max(0, int(ms // 1000))
    minutes, seconds = divmod(total_seconds, 60)
    if minutes <= 0:
        return f"{seconds}s"
    return f"{minutes}m {seconds}s"


def format_countdown(ms: Optional[int]) -> str:
    """Format as m:ss for the in-page countdown overlay."""
    if ms is None:
        return ""
    minutes, seconds = divmod(max(0, int(ms // 1000)), 60)
    return f"{minutes}:{seconds:02d}"


def format_block_end(timestamp_ms: int) -> str:
    """Local wall-clock time a block ends, e.g. '2:45 PM'."""
    end = datetime.fromtimestamp(timestamp_ms / 1000)
    return end.strftime("%I:%M %p").lstrip('0')
