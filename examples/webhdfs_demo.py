#!/usr/bin/env python3
"""Runnable demo: write a few events to HDFS and print the sink stats.

Prerequisites:
    a reachable namenode (or HttpFS gateway), e.g.
    WEBHDFS_HOST=namenode uv run python examples/webhdfs_demo.py
"""

from __future__ import annotations

import asyncio
import sys
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console

from webhdfs_sink.config.loader import load_sink_config
from webhdfs_sink.observability.health import check_sink_health
from webhdfs_sink.sinks.webhdfs import WebHdfsSink

console = Console()

CONFIG = Path(__file__).resolve().parent / "sink-config.yaml"


def main() -> None:
    # 1. Load config, small buffer so the demo flushes by size
    cfg = load_sink_config(CONFIG, overrides={"buffer": {"flush_size": 5}})
    console.print("[bold]Sink config loaded[/bold]", cfg.sink_id)

    # 2. Health check
    health = check_sink_health(cfg)
    if not health.healthy:
        console.print("[red]Sink not healthy:[/red]", health.summary)
        sys.exit(1)
    console.print("[green]All components healthy[/green]")

    # 3. Write events
    async def run() -> dict[str, object]:
        sink = WebHdfsSink(cfg)
        await sink.start()
        try:
            for i in range(12):
                await sink.write(
                    {
                        "@timestamp": datetime.now(UTC).isoformat(),
                        "host": "demo",
                        "message": f"event {i}",
                    }
                )
        finally:
            await sink.stop()
        return await sink.health()

    stats = asyncio.run(run())
    console.print(
        f"[green]Wrote {stats['records_written']} events[/green] "
        f"in {stats['flushes']} flushes to {cfg.path}"
    )


if __name__ == "__main__":
    main()
