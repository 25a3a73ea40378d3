from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO
import sys
import time

import aiofiles
from loguru import logger

from dogfetch.core.output import BaseOutput, InitializationError, WriteError, dumps_record


class NdjsonOutput(BaseOutput):
    """Streams records as newline-delimited JSON, one line per record.

    Every page is written and flushed as soon as it arrives, so memory use
    does not grow with the export and an interrupted run keeps every page
    written so far. Writes go to a file (truncated, or appended to when
    resuming) or to a text stream, standard output by default.
    """

    def __init__(self, path: str = "", append: bool = False, stream: Optional[TextIO] = None):
        super().__init__()
        self.path: Optional[Path] = Path(path) if path else None
        self.append = append
        self._stream = stream
        self._file = None

    async def initialize(self) -> None:
        """Open the destination file, or bind the output stream."""
        if self._is_initialized:
            return

        if self.path is not None:
            mode = "a" if self.append else "w"
            try:
                self._file = await aiofiles.open(self.path, mode, encoding="utf-8")
            except OSError as e:
                raise InitializationError(f"cannot open {self.path}: {e}") from e
            logger.info(f"Opened {self.path} for {'append' if self.append else 'write'}")
        elif self._stream is None:
            self._stream = sys.stdout

        self._is_initialized = True

    async def write_page(self, records: List[Dict[str, Any]]) -> None:
        """Write each record immediately as its own line."""
        if not self._is_initialized:
            await self.initialize()

        started = time.monotonic()
        try:
            chunk = "".join(dumps_record(record) + "\n" for record in records)
            if self._file is not None:
                await self._file.write(chunk)
                await self._file.flush()
            else:
                self._stream.write(chunk)
                self._stream.flush()
        except (OSError, TypeError, ValueError) as e:
            self._record_failure(e)
            raise WriteError(f"failed to write {len(records)} records: {e}") from e

        self._metrics['pages_written'] += 1
        self._record_write(len(records), len(chunk.encode()), started)

    async def finalize(self) -> None:
        # Already on disk page by page
        pass

    async def close(self) -> None:
        """Close the file if this sink opened it; standard output stays open."""
        if self._file is not None:
            await self._file.close()
            self._file = None
            logger.debug(f"Closed {self.path}")
