from datetime import datetime, UTC
from typing import Any, Dict, List, Optional, Protocol
import asyncio

import aiohttp
from loguru import logger
from pydantic import BaseModel, Field

from dogfetch.core.auth import DatadogKeyAuth
from dogfetch.core.pagination import CursorStrategy

DEFAULT_SITE = "datadoghq.com"
LOGS_ENDPOINT = "/api/v2/logs/events"
TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_time(value: datetime) -> str:
    """Render a datetime as the UTC timestamp the API expects."""
    return value.astimezone(UTC).strftime(TIME_FORMAT)


class Page(BaseModel):
    """One batch of records plus the cursor for the next batch (empty when exhausted)."""
    records: List[Dict[str, Any]] = Field(default_factory=list)
    cursor: str = ""


class ResponseInfo(BaseModel):
    """Status and headers of a failed HTTP response."""
    status: int
    headers: Dict[str, str] = Field(default_factory=dict)

    def get_header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


class ApiError(Exception):
    """A failed page request.

    ``response`` is None for transport failures where no HTTP response was
    received (connection refused, DNS, timeouts).
    """

    def __init__(self, message: str, response: Optional[ResponseInfo] = None):
        super().__init__(message)
        self.response = response

    @property
    def status(self) -> Optional[int]:
        return self.response.status if self.response else None


class PageSource(Protocol):
    """Anything that can return one page of log records."""

    async def list_page(
        self,
        query: str,
        index: Optional[str] = None,
        time_from: Optional[datetime] = None,
        time_to: Optional[datetime] = None,
        page_size: int = 1000,
        cursor: str = ""
    ) -> Page:
        ...


class LogsClient:
    """Datadog Logs API client for cursor-paginated log search."""

    def __init__(
        self,
        auth: DatadogKeyAuth,
        site: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 30,
        pagination: Optional[CursorStrategy] = None
    ):
        self.auth = auth
        self.base_url = (base_url or f"https://api.{site or DEFAULT_SITE}").rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.pagination = pagination or CursorStrategy()
        self.session: Optional[aiohttp.ClientSession] = None
        self._metrics = {
            'requests_made': 0,
            'requests_failed': 0,
            'records_received': 0
        }

    async def __aenter__(self) -> 'LogsClient':
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit with proper cleanup."""
        await self.cleanup()

    async def _ensure_session(self) -> None:
        if not self.session:
            headers = await self.auth.get_auth_headers()
            headers["Accept"] = "application/json"
            self.session = aiohttp.ClientSession(headers=headers, timeout=self.timeout)

    async def cleanup(self) -> None:
        """Clean up resources."""
        if self.session:
            await self.session.close()
            self.session = None

    def get_metrics(self) -> Dict[str, Any]:
        """Get current request metrics."""
        metrics = self._metrics.copy()
        metrics.update(self.auth.get_metrics())
        return metrics

    def _build_params(
        self,
        query: str,
        index: Optional[str],
        time_from: Optional[datetime],
        time_to: Optional[datetime],
        page_size: int,
        cursor: str
    ) -> Dict[str, Any]:
        base_params: Dict[str, Any] = {"sort": "timestamp"}
        if query:
            base_params["filter[query]"] = query
        if index:
            base_params["filter[indexes]"] = index
        if time_from is not None:
            base_params["filter[from]"] = format_time(time_from)
        # An open window end is left for the server to treat as "now"
        if time_to is not None:
            base_params["filter[to]"] = format_time(time_to)
        return self.pagination.get_initial_params(base_params, page_size, cursor)

    async def list_page(
        self,
        query: str,
        index: Optional[str] = None,
        time_from: Optional[datetime] = None,
        time_to: Optional[datetime] = None,
        page_size: int = 1000,
        cursor: str = ""
    ) -> Page:
        """Fetch one page of logs.

        Raises:
            ApiError: On a non-2xx response (with status and headers) or a
                transport failure (without a response)
        """
        await self._ensure_session()
        url = f"{self.base_url}{LOGS_ENDPOINT}"
        params = self._build_params(query, index, time_from, time_to, page_size, cursor)
        logger.debug(f"Requesting {url} with params: {params}")

        self._metrics['requests_made'] += 1
        try:
            async with self.session.get(url, params=params) as response:
                if response.status >= 400:
                    self._metrics['requests_failed'] += 1
                    message = await self._error_message(response)
                    raise ApiError(
                        message,
                        ResponseInfo(status=response.status, headers=dict(response.headers))
                    )
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._metrics['requests_failed'] += 1
            logger.debug(f"Transport failure: {e!r}")
            raise ApiError(str(e) or e.__class__.__name__) from e

        if not isinstance(data, dict):
            self._metrics['requests_failed'] += 1
            raise ApiError(f"unexpected response body: expected a JSON object, got {type(data).__name__}")

        records = data.get("data") or []
        if not isinstance(records, list):
            self._metrics['requests_failed'] += 1
            raise ApiError(f"unexpected response body: 'data' is {type(records).__name__}, not a list")
        self._metrics['records_received'] += len(records)
        return Page(records=records, cursor=self.pagination.get_next_cursor(data))

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        """Extract the API's error text, falling back to the HTTP reason."""
        reason = f"{response.status} {response.reason or ''}".strip()
        try:
            body = await response.json(content_type=None)
        except (ValueError, aiohttp.ClientError):
            return reason
        if isinstance(body, dict) and body.get("errors"):
            return f"{reason}: {'; '.join(str(e) for e in body['errors'])}"
        return reason
