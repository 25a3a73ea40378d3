from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO
import os
import sys
import time

import aiofiles
from loguru import logger

from dogfetch.core.output import BaseOutput, InitializationError, WriteError, dumps_record


class JsonDocumentOutput(BaseOutput):
    """Buffers every record and writes one JSON document at finalize.

    The document wraps the ordered records with summary metadata::

        {"logs": [...], "meta": {"total_fetched": N, "pages": P}}

    Memory grows with the number of records fetched, and nothing reaches
    the destination unless ``finalize()`` runs.
    """

    def __init__(self, path: str = "", stream: Optional[TextIO] = None):
        super().__init__()
        self.path: Optional[Path] = Path(path) if path else None
        self._stream = stream
        self._records: List[Dict[str, Any]] = []
        self._page_count = 0
        self._finalized = False

    async def initialize(self) -> None:
        """Check the destination is writable so a bad path fails before any fetch."""
        if self._is_initialized:
            return

        if self.path is not None:
            parent = self.path.parent
            if self.path.is_dir():
                raise InitializationError(f"cannot write {self.path}: is a directory")
            if not parent.is_dir():
                raise InitializationError(f"cannot write {self.path}: directory {parent} does not exist")
            target = self.path if self.path.exists() else parent
            if not os.access(target, os.W_OK):
                raise InitializationError(f"cannot write {self.path}: permission denied")
        elif self._stream is None:
            self._stream = sys.stdout

        self._is_initialized = True

    async def write_page(self, records: List[Dict[str, Any]]) -> None:
        """Buffer the page's records in memory."""
        self._records.extend(records)
        self._page_count += 1
        self._metrics['pages_written'] = self._page_count

    def build_document(self) -> Dict[str, Any]:
        """The composite document finalize() writes."""
        return {
            "logs": self._records,
            "meta": {
                "total_fetched": len(self._records),
                "pages": self._page_count
            }
        }

    async def finalize(self) -> None:
        """Write all buffered records as a single document, once."""
        if self._finalized:
            return
        if not self._is_initialized:
            await self.initialize()

        started = time.monotonic()
        try:
            text = dumps_record(self.build_document(), indent=2) + "\n"
            if self.path is not None:
                async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                    await f.write(text)
            else:
                self._stream.write(text)
                self._stream.flush()
        except (OSError, TypeError, ValueError) as e:
            self._record_failure(e)
            raise WriteError(f"failed to write JSON document: {e}") from e

        self._finalized = True
        self._record_write(len(self._records), len(text.encode()), started)
        logger.info(
            f"Wrote {len(self._records)} records from {self._page_count} pages "
            f"to {self.path or 'stdout'}"
        )

    async def close(self) -> None:
        # Nothing held open between calls
        pass
