from datetime import datetime, UTC
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional, Tuple

from loguru import logger
from pydantic import BaseModel

from dogfetch.core.client import ResponseInfo

MAX_RETRIES = 3                    # Retries per page before the failure is terminal
BASE_BACKOFF = 1.0                 # Seconds; doubled on every attempt
RATE_LIMIT_WAIT = 60.0             # Seconds to wait on a 429 without Retry-After

RETRYABLE_STATUSES = frozenset({500, 502, 503, 504})
FATAL_STATUSES = frozenset({400, 401, 403, 404})


class RetryConfig(BaseModel):
    """Configuration for retry mechanism with exponential backoff."""
    max_retries: int = MAX_RETRIES
    base_delay: float = BASE_BACKOFF
    rate_limit_wait: float = RATE_LIMIT_WAIT


class RetryDecision(BaseModel):
    """Retry verdict for one failed call, computed fresh per attempt."""
    model_config = {
        'arbitrary_types_allowed': True
    }

    error: Exception
    retryable: bool = False
    retry_after: Optional[float] = None     # Minimum delay in seconds, when the server asked for one


class FetchError(Exception):
    """Terminal failure of a fetch session."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def parse_retry_after(response: ResponseInfo) -> Optional[float]:
    """Read the Retry-After header as seconds.

    Accepts integer seconds or an HTTP date (delay until that date).
    Returns None when the header is missing or cannot be parsed.
    """
    header = response.get_header("Retry-After")
    if not header:
        return None
    header = header.strip()

    # int() rejects non-ASCII digits such as superscripts
    if header.isascii() and header.isdigit():
        return float(int(header))

    try:
        when = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return (when - datetime.now(UTC)).total_seconds()


def classify_error(
    error: Optional[BaseException],
    response: Optional[ResponseInfo],
    rate_limit_wait: float = RATE_LIMIT_WAIT
) -> Optional[RetryDecision]:
    """Decide whether a failed call is worth retrying.

    Args:
        error: The failure, or None when the call succeeded
        response: HTTP response metadata, None for transport failures
        rate_limit_wait: Delay used for a 429 that carries no Retry-After

    Returns:
        None when there is no error, otherwise a RetryDecision
    """
    if error is None:
        return None

    decision = RetryDecision(error=error)

    if response is None:
        # Network error, likely retryable
        decision.retryable = True
        return decision

    status = response.status
    if status == 429:
        decision.retryable = True
        if response.get_header("Retry-After") is None:
            decision.retry_after = rate_limit_wait
        else:
            # Unparseable header leaves the delay to exponential backoff
            decision.retry_after = parse_retry_after(response)
    elif status in RETRYABLE_STATUSES:
        decision.retryable = True
    elif status in FATAL_STATUSES:
        decision.retryable = False
    else:
        decision.retryable = status >= 500

    return decision


def exponential_backoff(attempt: int, base_delay: float = BASE_BACKOFF) -> float:
    """Backoff delay in seconds: base * 2^attempt, no jitter."""
    return base_delay * (2 ** attempt)


def should_retry(
    attempt: int,
    decision: Optional[RetryDecision],
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_BACKOFF
) -> Tuple[bool, float]:
    """Determine if an operation should be retried and after how long."""
    if decision is None or not decision.retryable:
        return False, 0.0

    if attempt >= max_retries:
        return False, 0.0

    if decision.retry_after is not None and decision.retry_after > 0:
        return True, decision.retry_after

    return True, exponential_backoff(attempt, base_delay)


def format_retry_error(error: BaseException, response: Optional[ResponseInfo]) -> FetchError:
    """Turn a terminal failure into a one-line, actionable FetchError."""
    if response is None:
        result = FetchError(f"network error: {error}")
    elif response.status == 401:
        result = FetchError(
            "authentication failed: check DD_API_KEY and DD_APP_KEY", status=401
        )
    elif response.status == 403:
        result = FetchError(
            "permission denied: check your API key has logs_read_data permission",
            status=403
        )
    elif response.status == 429:
        result = FetchError(f"rate limit exceeded: {error}", status=429)
    else:
        result = FetchError(
            f"API error (status {response.status}): {error}", status=response.status
        )
    result.__cause__ = error
    return result


class RetryHandler:
    """Applies the retry policy for the fetch loop and tracks retry metrics."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self._metrics: Dict[str, Any] = {
            'retry_attempts': 0,
            'retry_successes': 0,
            'retry_failures': 0,
            'total_retry_wait': 0.0
        }

    def classify(
        self,
        error: Optional[BaseException],
        response: Optional[ResponseInfo]
    ) -> Optional[RetryDecision]:
        return classify_error(error, response, self.config.rate_limit_wait)

    def should_retry(self, attempt: int, decision: Optional[RetryDecision]) -> Tuple[bool, float]:
        retry, delay = should_retry(
            attempt,
            decision,
            max_retries=self.config.max_retries,
            base_delay=self.config.base_delay
        )
        if retry:
            self._metrics['retry_attempts'] += 1
            self._metrics['total_retry_wait'] += delay
        elif decision is not None and decision.retryable:
            logger.warning(f"Giving up after {attempt} retries: {decision.error}")
            self._metrics['retry_failures'] += 1
        return retry, delay

    def record_success(self, attempt: int) -> None:
        """Note a page that succeeded, counting it if it needed retries."""
        if attempt > 0:
            self._metrics['retry_successes'] += 1

    def get_metrics(self) -> Dict[str, Any]:
        """Get current retry metrics."""
        metrics = self._metrics.copy()
        total = metrics['retry_attempts']
        metrics['retry_success_rate'] = (
            metrics['retry_successes'] / total if total > 0 else 0.0
        )
        return metrics
