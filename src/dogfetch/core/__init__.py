from .types import (
    OutputFormat,
    FetchStatus,
    resolve_format
)
from .config import (
    FetchConfig,
    parse_time,
    default_from
)
from .auth import (
    AuthConfig,
    DatadogKeyAuth
)
from .pagination import (
    CursorConfig,
    CursorStrategy
)
from .client import (
    ApiError,
    LogsClient,
    Page,
    PageSource,
    ResponseInfo
)
from .retry import (
    FetchError,
    RetryConfig,
    RetryDecision,
    RetryHandler,
    classify_error,
    exponential_backoff,
    format_retry_error,
    parse_retry_after,
    should_retry
)
from .output import (
    BaseOutput,
    OutputError,
    InitializationError,
    WriteError
)
from .fetcher import (
    Fetcher,
    FetchResult,
    FetchState
)

__all__ = [
    'OutputFormat',
    'FetchStatus',
    'resolve_format',
    'FetchConfig',
    'parse_time',
    'default_from',
    'AuthConfig',
    'DatadogKeyAuth',
    'CursorConfig',
    'CursorStrategy',
    'ApiError',
    'LogsClient',
    'Page',
    'PageSource',
    'ResponseInfo',
    'FetchError',
    'RetryConfig',
    'RetryDecision',
    'RetryHandler',
    'classify_error',
    'exponential_backoff',
    'format_retry_error',
    'parse_retry_after',
    'should_retry',
    'BaseOutput',
    'OutputError',
    'InitializationError',
    'WriteError',
    'Fetcher',
    'FetchResult',
    'FetchState'
]
