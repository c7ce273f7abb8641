"""
PrismPDF - Format Utilities Module

Shared helpers for turning sizes and timestamps into display strings.
"""

from datetime import datetime

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format (e.g. "1.50 MB")."""
    if size_bytes <= 0:
        return "0 B"

    size = float(size_bytes)
    unit = _SIZE_UNITS[0]
    for unit in _SIZE_UNITS:
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            break
        size /= 1024

    if unit == "B":
        return f"{int(size)} B"
    return f"{size:.2f} {unit}"


def format_timestamp(timestamp_ms: int) -> str:
    """Format a millisecond epoch timestamp as local "YYYY-MM-DD HH:MM"."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M")


def format_reduction(original_size: int, new_size: int) -> str:
    """Describe how much smaller ``new_size`` is, as a rounded percentage."""
    if original_size <= 0:
        return "0%"
    return f"{round((1 - new_size / original_size) * 100)}%"
