from typing import Dict, Optional, TextIO, Type

from loguru import logger

from dogfetch.core.output import BaseOutput
from dogfetch.core.types import FORMAT_ALIASES, OutputFormat
from dogfetch.outputs.json_document import JsonDocumentOutput
from dogfetch.outputs.ndjson import NdjsonOutput


class OutputFactory:
    """Factory for creating output sinks from a format name."""

    _output_handlers: Dict[str, Type[BaseOutput]] = {
        OutputFormat.NDJSON.value: NdjsonOutput,
        OutputFormat.JSON.value: JsonDocumentOutput,
    }

    @classmethod
    def register_output(cls, type_name: str, handler_class: Type[BaseOutput]) -> None:
        """Register an output handler type."""
        cls._output_handlers[type_name.lower()] = handler_class

    @classmethod
    def get_handler(cls, format_name: str) -> Type[BaseOutput]:
        """Look up the sink class for a format name or alias.

        Raises:
            ValueError: If the format is not supported
        """
        key = str(getattr(format_name, 'value', format_name) or "").strip().lower()
        if key in FORMAT_ALIASES:
            key = FORMAT_ALIASES[key].value
        handler_class = cls._output_handlers.get(key)
        if not handler_class:
            raise ValueError(f"unsupported format: {format_name}")
        return handler_class

    @classmethod
    def create_output(
        cls,
        format_name: str,
        path: str = "",
        append: bool = False,
        stream: Optional[TextIO] = None
    ) -> BaseOutput:
        """Create an output sink.

        Args:
            format_name: ``ndjson``/``streaming`` or ``json``/``buffered``
            path: Destination file; empty writes to ``stream`` (stdout by default)
            append: Append to an existing file (streaming sink only)
            stream: Text stream used when no path is given

        Raises:
            ValueError: If the format is not supported
        """
        handler_class = cls.get_handler(format_name)
        logger.debug(f"Creating {handler_class.__name__} for {path or 'stdout'}")
        if issubclass(handler_class, NdjsonOutput):
            return handler_class(path=path, append=append, stream=stream)
        return handler_class(path=path, stream=stream)
