from abc import ABC, abstractmethod
from datetime import datetime, date, UTC
from typing import Any, Dict, List
import json
import time

from loguru import logger


class DateTimeEncoder(json.JSONEncoder):
    """Custom JSON encoder for datetime objects."""
    def default(self, obj):
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


def dumps_record(record: Dict[str, Any], **kwargs: Any) -> str:
    """Serialize one record (or document) to JSON text."""
    return json.dumps(record, cls=DateTimeEncoder, ensure_ascii=False, **kwargs)


class BaseOutput(ABC):
    """Base class for output sinks with metrics and resource management.

    Lifecycle: ``initialize()`` once before the first page, ``write_page()``
    per fetched page, ``finalize()`` once after the fetch loop stops, and
    ``close()`` on the way out (idempotent, safe without initialize).
    """

    def __init__(self):
        self._is_initialized: bool = False
        self._metrics: Dict[str, Any] = {
            'records_written': 0,
            'pages_written': 0,
            'bytes_written': 0,
            'write_errors': 0,
            'last_write_time': None,
            'total_write_time': 0.0
        }
        self._start_time = time.monotonic()

    async def __aenter__(self) -> 'BaseOutput':
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the destination before any page is fetched.

        Raises:
            InitializationError: If the destination is not writable
        """
        pass

    @abstractmethod
    async def write_page(self, records: List[Dict[str, Any]]) -> None:
        """Accept one page of records.

        Raises:
            WriteError: If the records cannot be written
        """
        pass

    @abstractmethod
    async def finalize(self) -> None:
        """Flush whatever the sink still holds after the last page."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release resources. Safe to call more than once."""
        pass

    def _record_write(self, record_count: int, byte_count: int, started: float) -> None:
        self._metrics['records_written'] += record_count
        self._metrics['bytes_written'] += byte_count
        self._metrics['last_write_time'] = datetime.now(UTC)
        self._metrics['total_write_time'] += time.monotonic() - started

    def _record_failure(self, error: Exception) -> None:
        self._metrics['write_errors'] += 1
        logger.error(f"Write operation failed: {str(error)}")

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics for monitoring."""
        metrics = self._metrics.copy()
        uptime = time.monotonic() - self._start_time
        metrics['uptime'] = uptime
        metrics['records_per_second'] = (
            metrics['records_written'] / uptime
            if uptime > 0 else 0
        )
        return metrics


class OutputError(Exception):
    """Base class for output-related errors."""
    pass


class InitializationError(OutputError):
    """Raised when output initialization fails."""
    pass


class WriteError(OutputError):
    """Raised when write operation fails."""
    pass
