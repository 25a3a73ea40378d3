"""dogfetch: export logs from the Datadog Logs API to JSON or NDJSON."""
from importlib.metadata import PackageNotFoundError, version

from dogfetch.core import (
    FetchConfig,
    Fetcher,
    FetchError,
    FetchResult,
    FetchStatus,
    LogsClient,
    OutputFormat
)
from dogfetch.core.factory import OutputFactory

try:
    __version__ = version("dogfetch")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "FetchConfig",
    "Fetcher",
    "FetchError",
    "FetchResult",
    "FetchStatus",
    "LogsClient",
    "OutputFactory",
    "OutputFormat",
    "__version__"
]
