"""Core type definitions."""
from enum import Enum
from typing import Dict


class OutputFormat(str, Enum):
    """Supported output formats."""
    # NDJSON: one record per line, written as soon as a page arrives
    # JSON: all records buffered and written once with a metadata envelope
    NDJSON = "ndjson"
    JSON = "json"


# Descriptive names accepted wherever a format name is
FORMAT_ALIASES: Dict[str, OutputFormat] = {
    "streaming": OutputFormat.NDJSON,
    "buffered": OutputFormat.JSON,
}


def resolve_format(name: str) -> OutputFormat:
    """Map a format name or alias to an OutputFormat.

    Raises:
        ValueError: If the name is not a known format
    """
    key = (name or "").strip().lower()
    if key in FORMAT_ALIASES:
        return FORMAT_ALIASES[key]
    try:
        return OutputFormat(key)
    except ValueError:
        raise ValueError(f"unsupported format: {name}")


class FetchStatus(str, Enum):
    """How a fetch session ended without error."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


__all__ = [
    'OutputFormat',
    'FORMAT_ALIASES',
    'resolve_format',
    'FetchStatus'
]
