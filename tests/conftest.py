import io
import pytest
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional, Union

from dogfetch.core.client import ApiError, Page, ResponseInfo
from dogfetch.core.config import FetchConfig
from dogfetch.core.retry import RetryConfig, RetryHandler


def make_records(count: int, start: int = 0) -> List[Dict[str, Any]]:
    """Build Datadog-shaped log records."""
    return [
        {
            "id": f"log-{i}",
            "type": "log",
            "attributes": {
                "message": f"test message {i}",
                "status": "info",
                "service": "test-service",
                "timestamp": "2024-02-12T12:00:00Z",
                "tags": ["env:test", f"seq:{i}"]
            }
        }
        for i in range(start, start + count)
    ]


def api_error(status: Optional[int], headers: Optional[Dict[str, str]] = None, message: str = "boom") -> ApiError:
    """ApiError with a response for ``status``, or a transport error when None."""
    if status is None:
        return ApiError(message)
    return ApiError(message, ResponseInfo(status=status, headers=headers or {}))


class ScriptedSource:
    """Page source that replays a script of pages and errors, one per call."""

    def __init__(self, script: List[Union[Page, Exception]], on_call=None):
        self.script = list(script)
        self.calls: List[Dict[str, Any]] = []
        self.on_call = on_call

    async def list_page(
        self,
        query: str,
        index: Optional[str] = None,
        time_from: Optional[datetime] = None,
        time_to: Optional[datetime] = None,
        page_size: int = 1000,
        cursor: str = ""
    ) -> Page:
        self.calls.append({
            "query": query,
            "index": index,
            "time_from": time_from,
            "time_to": time_to,
            "page_size": page_size,
            "cursor": cursor
        })
        if self.on_call:
            self.on_call(len(self.calls))
        if not self.script:
            raise AssertionError("page source called more often than scripted")
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def err_out() -> io.StringIO:
    """Capture buffer for progress output."""
    return io.StringIO()


@pytest.fixture
def fetch_config() -> FetchConfig:
    """Provide a valid streaming fetch configuration."""
    return FetchConfig(
        query="service:test",
        index="main",
        time_from=datetime(2024, 2, 12, tzinfo=UTC),
        page_size=2,
        output_format="ndjson",
        api_key="test-api-key",
        app_key="test-app-key"
    )


@pytest.fixture
def fast_retry() -> RetryHandler:
    """Retry handler with millisecond backoff so retry tests stay quick."""
    return RetryHandler(RetryConfig(base_delay=0.001, rate_limit_wait=0.001))


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run with no Datadog variables set and no .env file in reach."""
    for name in ("DD_API_KEY", "DD_APP_KEY", "DD_SITE"):
        # setenv first so values loaded from a .env during the test are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return tmp_path
