"""dogfetch command line.

Usage:
    dogfetch --query 'service:web status:error'
    dogfetch --query 'service:web' --format ndjson --output logs.ndjson
    dogfetch --query 'service:web' --format ndjson --output logs.ndjson \\
        --append --cursor '<cursor printed by an interrupted run>'

Credentials come from the environment (a ``.env`` file is honoured):
    DD_API_KEY   Datadog API key (required)
    DD_APP_KEY   Datadog application key (required)
    DD_SITE      Datadog site (optional, default: datadoghq.com)

Exit codes: 0 = completed or cancelled, 1 = configuration or fetch error.
"""
from pathlib import Path
from typing import Annotated, Any, Dict, Optional, TextIO
import asyncio
import signal
import sys

import typer
from loguru import logger
from pydantic import ValidationError

from dogfetch import __version__
from dogfetch.core.auth import AuthConfig, DatadogKeyAuth
from dogfetch.core.client import LogsClient
from dogfetch.core.config import FetchConfig
from dogfetch.core.factory import OutputFactory
from dogfetch.core.fetcher import Fetcher, FetchResult
from dogfetch.core.output import OutputError
from dogfetch.core.retry import FetchError

DEFAULT_OUTPUT = "results.json"

app = typer.Typer(
    name="dogfetch",
    help="dogfetch - Fetch logs from Datadog",
    add_completion=False,
)


def setup_logging(verbose: bool = False) -> None:
    """Route loguru diagnostics to stderr; progress lines are printed separately."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def describe_error(error: Exception) -> str:
    """One-line description of a configuration error."""
    if isinstance(error, ValidationError):
        messages = []
        for detail in error.errors():
            message = str(detail.get('msg', ''))
            messages.append(message.removeprefix("Value error, "))
        return "; ".join(messages)
    return str(error)


def build_config(config_file: Optional[Path], **options: Any) -> FetchConfig:
    """Merge command-line options with an optional YAML file and the environment."""
    overrides: Dict[str, Any] = {k: v for k, v in options.items() if v is not None}
    if config_file is not None:
        return FetchConfig.from_yaml(
            config_file, defaults={'output_path': DEFAULT_OUTPUT}, **overrides
        )
    overrides.setdefault('output_path', DEFAULT_OUTPUT)
    return FetchConfig.from_env(**overrides)


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, cancel: asyncio.Event) -> None:
    def _on_signal() -> None:
        print("\nReceived interrupt signal, shutting down gracefully...", file=sys.stderr, flush=True)
        cancel.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal)
        except (NotImplementedError, RuntimeError) as e:
            # Platforms without loop signal support fall back to KeyboardInterrupt
            logger.debug(f"Signal handler for {sig.name} not installed: {e}")


def _remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError):
            pass


async def run_fetch(
    config: FetchConfig,
    err_out: Optional[TextIO] = None,
    stream: Optional[TextIO] = None
) -> FetchResult:
    """Build the sink and client for ``config`` and run one fetch session."""
    output = OutputFactory.create_output(
        config.output_format,
        path=config.output_path,
        append=config.append,
        stream=stream
    )
    auth = DatadogKeyAuth(AuthConfig(api_key=config.api_key, app_key=config.app_key))

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    _install_signal_handlers(loop, cancel)
    try:
        # The sink opens first so a bad destination fails before any request
        async with output:
            async with LogsClient(auth, site=config.site) as client:
                fetcher = Fetcher(config, client, output, err_out=err_out)
                return await fetcher.fetch(cancel)
    finally:
        _remove_signal_handlers(loop)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dogfetch {__version__}")
        raise typer.Exit()


@app.command()
def main(
    query: Annotated[Optional[str], typer.Option("--query", help="The filter query (search term)")] = None,
    index: Annotated[Optional[str], typer.Option("--index", help="Which index to read from [default: main]")] = None,
    time_from: Annotated[Optional[str], typer.Option("--from", help="Start time, RFC3339 or Unix seconds (default: 24 hours ago)")] = None,
    time_to: Annotated[Optional[str], typer.Option("--to", help="End time, RFC3339 or Unix seconds (default: now)")] = None,
    page_size: Annotated[Optional[int], typer.Option("--page-size", "--pageSize", help="Results per page, 1-5000 [default: 1000]")] = None,
    output: Annotated[Optional[str], typer.Option("--output", "-o", help=f"Output file path, '-' for stdout [default: {DEFAULT_OUTPUT}]")] = None,
    output_format: Annotated[Optional[str], typer.Option("--format", "-f", help="Output format: json or ndjson [default: json]")] = None,
    cursor: Annotated[Optional[str], typer.Option("--cursor", help="Page cursor for resuming (ndjson only)")] = None,
    append: Annotated[Optional[bool], typer.Option("--append/--no-append", help="Append to output file (ndjson only)")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", help="YAML file with any of the options above; flags win")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
    version: Annotated[Optional[bool], typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit")] = None,
) -> None:
    """Fetch logs matching a query and save them as JSON or NDJSON."""
    setup_logging(verbose)

    try:
        config = build_config(
            config_file,
            query=query,
            index=index,
            time_from=time_from,
            time_to=time_to,
            page_size=page_size,
            output_path=output,
            output_format=output_format,
            cursor=cursor,
            append=append
        )
    except (ValueError, OSError) as e:
        typer.echo(f"Configuration error: {describe_error(e)}", err=True)
        typer.echo("Run 'dogfetch --help' for usage.", err=True)
        raise typer.Exit(code=1)

    try:
        asyncio.run(run_fetch(config))
    except (FetchError, OutputError, ValueError) as e:
        typer.echo(f"Fetch failed: {e}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
