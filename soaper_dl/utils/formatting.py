"""
Helper functions for formatting data into human-readable strings.
"""

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    size = float(bytes_size)
    for unit in _SIZE_UNITS[:-1]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {_SIZE_UNITS[-1]}"


def format_duration(seconds: float) -> str:
    """'3h 2m 5s', dropping leading zero units; never empty."""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    parts = [f"{value}{unit}" for value, unit in ((hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def clean_text(text: str) -> str:
    """Collapses runs of whitespace and trims the ends, as scraped text needs."""
    return " ".join(text.split())
