"""Typer CLI for the WebHDFS sink."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import IO, Any

import structlog
import typer
from rich.console import Console
from rich.table import Table

from webhdfs_sink.config.loader import load_sink_config
from webhdfs_sink.config.models import SinkConfig
from webhdfs_sink.observability.health import Status, check_sink_health
from webhdfs_sink.observability.logging import configure_logging
from webhdfs_sink.sinks.webhdfs import SinkStartupError, WebHdfsSink

logger = structlog.get_logger()
console = Console()
app = typer.Typer(name="webhdfs-sink", help="Stream events into HDFS over WebHDFS")


@app.callback()
def main(
    log_level: str = typer.Option("info", "--log-level", help="Log level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
) -> None:
    """Configure logging for every sub-command."""
    configure_logging(log_level, json_logs=json_logs)


def _load(config_path: str) -> SinkConfig:
    path = Path(config_path)
    if not path.exists():
        console.print(f"[red]Config file not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return load_sink_config(path)
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        raise typer.Exit(1) from exc


def _parse_line(line: str) -> dict[str, Any] | None:
    text = line.rstrip("\r\n")
    if not text.strip():
        return None
    try:
        event = json.loads(text)
    except json.JSONDecodeError:
        return {"message": text}
    if isinstance(event, dict):
        return event
    return {"message": event}


@app.command()
def validate(
    config_path: str = typer.Argument(..., help="Path to sink YAML"),
) -> None:
    """Validate a sink configuration file."""
    cfg = _load(config_path)
    console.print(f"[green]Valid[/green] — sink_id={cfg.sink_id}")
    console.print(f"  endpoint:    {cfg.webhdfs.base_url} (user={cfg.webhdfs.user})")
    console.print(f"  mode:        {'httpfs' if cfg.webhdfs.use_httpfs else 'webhdfs'}")
    console.print(f"  path:        {cfg.path}")
    compression = cfg.compression.codec.value
    if compression == "snappy":
        compression += f" ({cfg.compression.snappy_format.value})"
    console.print(f"  compression: {compression}")
    console.print(
        f"  flush:       every {cfg.buffer.flush_size} events "
        f"or {cfg.buffer.idle_flush_seconds}s idle"
    )
    retry = (
        f"{cfg.retry.max_attempts} attempts, {cfg.retry.interval_seconds}s interval"
        if cfg.retry.enabled
        else "disabled"
    )
    console.print(f"  retry:       {retry}")


@app.command()
def health(
    config_path: str = typer.Argument(..., help="Path to sink YAML"),
) -> None:
    """Check that the WebHDFS endpoint and compression backend are usable."""
    cfg = _load(config_path)
    result = check_sink_health(cfg)

    table = Table(title="Sink Health")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    for c in result.components:
        style = "green" if c.status == Status.HEALTHY else "red"
        table.add_row(c.name, f"[{style}]{c.status}[/{style}]", c.detail)

    console.print(table)
    if not result.healthy:
        raise typer.Exit(1)


async def _ingest(cfg: SinkConfig, stream: IO[str]) -> dict[str, Any]:
    sink = WebHdfsSink(cfg)
    await sink.start()
    try:
        while True:
            # Read off-loop so the idle flush timer keeps running on slow input.
            line = await asyncio.to_thread(stream.readline)
            if not line:
                break
            event = _parse_line(line)
            if event is not None:
                await sink.write(event)
    finally:
        await sink.stop()
    return await sink.health()


@app.command()
def ingest(
    config_path: str = typer.Argument(..., help="Path to sink YAML"),
    input_path: str = typer.Argument(
        "-", help="JSON-lines file to read ('-' for stdin)"
    ),
) -> None:
    """Write events (one JSON object or plain text line each) to HDFS."""
    cfg = _load(config_path)

    try:
        if input_path == "-":
            stats = asyncio.run(_ingest(cfg, sys.stdin))
        else:
            with Path(input_path).open(encoding="utf-8") as f:
                stats = asyncio.run(_ingest(cfg, f))
    except SinkStartupError as exc:
        console.print(f"[red]Startup failed:[/red] {exc}")
        raise typer.Exit(1) from exc
    except ImportError as exc:
        console.print(f"[red]Missing dependency:[/red] {exc}")
        raise typer.Exit(1) from exc

    table = Table(title=f"Ingest — {cfg.sink_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key in (
        "records_received",
        "records_written",
        "records_lost",
        "flushes",
        "batches_committed",
        "batches_lost",
        "paths_created",
    ):
        table.add_row(key, str(stats[key]))
    console.print(table)

    if stats["batches_lost"]:
        raise typer.Exit(2)
