"""Output sinks for fetched log records."""

from dogfetch.outputs.json_document import JsonDocumentOutput
from dogfetch.outputs.ndjson import NdjsonOutput

# Export output classes
__all__ = [
    "JsonDocumentOutput",
    "NdjsonOutput"
]
