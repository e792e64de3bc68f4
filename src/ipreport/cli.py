# connects command-line input to the aggregator and prints the selected rendering

from __future__ import annotations

import sys
from typing import List, Optional

import typer

from .config import Settings
from .exceptions import InvalidRequest
from .logging_setup import configure_logging
from .render import OutputMode, render, render_failures, select_mode
from .service import ReportAggregator

app = typer.Typer(add_completion=False, help="Latency, hops, ownership, location and weather for public IPs")


def _read_stream() -> List[str]:
    return [line for line in sys.stdin.read().splitlines() if line.strip()]


def _emit(rendered, mode: OutputMode) -> None:
    if mode is OutputMode.ARRAY:
        for report in rendered:
            typer.echo(repr(report))
    elif rendered:
        typer.echo(rendered)


@app.command()
def cli(
    addresses: Optional[List[str]] = typer.Argument(
        None, help="Addresses, individually or comma-delimited; '-' reads one per line from stdin"
    ),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="text (default), json or array"),
    as_json: bool = typer.Option(False, "--json", help="Shortcut for --output json"),
    as_array: bool = typer.Option(False, "--array", help="Shortcut for --output array"),
    count: Optional[int] = typer.Option(None, "--count", "-c", min=1, help="Echo requests per address"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Concurrent address pipelines"),
    weather_key: Optional[str] = typer.Option(
        None, "--weather-key", help="Key weather on the raw 'address' or resolved 'coordinates'"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Trace pipeline stages on stderr"),
):
    """Build a consolidated report for each address."""
    try:
        settings = Settings.from_env().override(
            ping_count=count, max_workers=workers,
            weather_key=weather_key.strip().lower() if weather_key else None,
        )
        mode = select_mode(output, as_json=as_json, as_array=as_array)
        configure_logging("DEBUG" if verbose else settings.log_level, force=True)

        values = list(addresses or [])
        if values == ["-"] or (not values and not sys.stdin.isatty()):
            values = _read_stream()

        aggregator = ReportAggregator.from_settings(settings)
        batch = aggregator.run(values)
    except InvalidRequest as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)

    _emit(render(batch, mode), mode)
    if batch.failures:
        typer.echo(render_failures(batch), err=True)
        raise typer.Exit(code=1)


def main() -> None:  # pragma: no cover - entrypoint
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
