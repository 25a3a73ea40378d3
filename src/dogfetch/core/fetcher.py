from typing import Optional, TextIO
import asyncio
import sys
import time

from loguru import logger
from pydantic import BaseModel, Field

from dogfetch.core.client import ApiError, Page, PageSource
from dogfetch.core.config import FetchConfig
from dogfetch.core.output import BaseOutput, OutputError
from dogfetch.core.retry import FetchError, RetryHandler, format_retry_error
from dogfetch.core.types import FetchStatus


class FetchState(BaseModel):
    """Session state owned by the fetch loop."""
    cursor: str = ""                                        # Cursor for the next page request
    total_records: int = 0
    page_count: int = 0
    start_time: float = Field(default_factory=time.monotonic)
    attempt: int = 0                                        # Retries of the current page only

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

    @property
    def rate(self) -> float:
        elapsed = self.elapsed
        return self.total_records / elapsed if elapsed > 0 else 0.0


class FetchResult(BaseModel):
    """Outcome of a fetch session that did not fail."""
    status: FetchStatus
    cursor: str = ""                                        # Resume point; empty once exhausted
    total_records: int = 0
    page_count: int = 0
    elapsed: float = 0.0


class Fetcher:
    """Drives sequential cursor pagination from a page source into an output sink.

    Each page is requested with the cursor returned by the previous one.
    Failed requests are classified and retried with backoff up to the
    retry ceiling; a page is either fully fetched or the session fails.
    Cancellation is observed before every request and during backoff
    waits, and ends the session with the cursor needed to resume.

    Operator-facing progress goes to ``err_out`` (standard error by
    default) so the data written to standard output stays clean.
    """

    def __init__(
        self,
        config: FetchConfig,
        source: PageSource,
        output: BaseOutput,
        err_out: Optional[TextIO] = None,
        retry_handler: Optional[RetryHandler] = None
    ):
        self.config = config
        self.source = source
        self.output = output
        self.err_out = err_out if err_out is not None else sys.stderr
        self.retry_handler = retry_handler or RetryHandler()

    def _emit(self, message: str = "") -> None:
        print(message, file=self.err_out, flush=True)

    async def fetch(self, cancel: Optional[asyncio.Event] = None) -> FetchResult:
        """Fetch every page and hand it to the output sink.

        Args:
            cancel: Event that, once set, stops the session at the next
                request or during a backoff wait

        Returns:
            FetchResult with status ``completed`` or ``cancelled``

        Raises:
            OutputError: If the sink cannot be prepared (before any request)
            FetchError: On a non-retryable failure, exhausted retries, or a
                failed page write; the sink is not finalized
        """
        cancel = cancel or asyncio.Event()

        await self.output.initialize()

        state = FetchState(cursor=self.config.cursor)
        self._emit(f"Starting fetch with query: {self.config.query}")
        self._emit(
            f"Time range: {self.config.time_from.isoformat()} to {self.config.describe_time_to()}"
        )
        self._emit(f"Page size: {self.config.page_size}")
        if state.cursor:
            self._emit(f"Resuming from cursor: {state.cursor}")
        self._emit()
        logger.info(f"Fetch started (index={self.config.index}, cursor={state.cursor or '-'})")

        while True:
            page = await self._fetch_page_with_retry(state, cancel)
            if page is None:
                return await self._cancelled(state)

            try:
                await self.output.write_page(page.records)
            except OutputError as e:
                raise FetchError(f"failed to write page: {e}") from e

            state.page_count += 1
            state.total_records += len(page.records)
            state.cursor = page.cursor

            progress = (
                f"Fetched {state.total_records} logs "
                f"({state.page_count} pages, {state.rate:.1f} logs/sec)"
            )
            if page.cursor:
                progress += f" - cursor: {page.cursor}"
            self._emit(progress)

            if not page.cursor or not page.records:
                break

        return await self._completed(state)

    async def _fetch_page_with_retry(
        self,
        state: FetchState,
        cancel: asyncio.Event
    ) -> Optional[Page]:
        """Fetch the page at ``state.cursor``; None means cancellation was observed."""
        state.attempt = 0
        while True:
            if cancel.is_set():
                return None

            try:
                page = await self.source.list_page(
                    query=self.config.query,
                    index=self.config.index or None,
                    time_from=self.config.time_from,
                    time_to=self.config.time_to,
                    page_size=self.config.page_size,
                    cursor=state.cursor
                )
            except ApiError as e:
                decision = self.retry_handler.classify(e, e.response)
                retry, delay = self.retry_handler.should_retry(state.attempt, decision)
                if not retry:
                    logger.error(f"Page request failed: {e}")
                    raise format_retry_error(e, e.response)

                state.attempt += 1
                self._emit(
                    f"Error (attempt {state.attempt}/{self.retry_handler.config.max_retries}): "
                    f"{e} - retrying in {delay:g}s..."
                )
                if await self._wait(delay, cancel):
                    return None
                continue

            self.retry_handler.record_success(state.attempt)
            state.attempt = 0
            return page

    @staticmethod
    async def _wait(delay: float, cancel: asyncio.Event) -> bool:
        """Sleep for ``delay`` seconds unless cancelled first; True means cancelled."""
        if cancel.is_set():
            return True
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        return cancel.is_set()

    async def _completed(self, state: FetchState) -> FetchResult:
        elapsed = state.elapsed
        self._emit()
        self._emit(
            f"Completed! Fetched {state.total_records} logs in "
            f"{state.page_count} pages ({elapsed:.1f}s)"
        )
        await self.output.finalize()
        logger.debug(f"Retry metrics: {self.retry_handler.get_metrics()}")
        logger.debug(f"Output metrics: {self.output.get_metrics()}")
        return FetchResult(
            status=FetchStatus.COMPLETED,
            cursor=state.cursor,
            total_records=state.total_records,
            page_count=state.page_count,
            elapsed=elapsed
        )

    async def _cancelled(self, state: FetchState) -> FetchResult:
        self._emit()
        self._emit(f"Operation cancelled. Resume with --cursor '{state.cursor}'")
        logger.info(f"Fetch cancelled after {state.page_count} pages")
        await self.output.finalize()
        return FetchResult(
            status=FetchStatus.CANCELLED,
            cursor=state.cursor,
            total_records=state.total_records,
            page_count=state.page_count,
            elapsed=state.elapsed
        )
