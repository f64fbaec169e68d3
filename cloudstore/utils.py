"""Formatting helpers shared by the CLI."""

from datetime import datetime
from typing import Optional

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(size_bytes: int) -> str:
    """Format a byte count in human-readable form.

    Examples:
        >>> format_size(512)
        '512 B'
        >>> format_size(1536)
        '1.5 KB'
        >>> format_size(5 * 1024 * 1024)
        '5.0 MB'
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in _SIZE_UNITS[1:]:
        size /= 1024
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            return f"{size:.1f} {unit}"
    return f"{size_bytes} B"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp as sent by the API.

    A trailing ``Z`` is accepted as UTC. Returns None for empty or
    unparseable input.
    """
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def format_timestamp(value: Optional[str]) -> str:
    """Format an API timestamp for display, or "-" if missing."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return value or "-"
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def truncate(text: str, width: int) -> str:
    """Shorten ``text`` to ``width`` characters, marking the cut with "..."."""
    if len(text) <= width:
        return text
    return text[: max(width - 3, 0)] + "..."
