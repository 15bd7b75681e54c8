"""Sink connector protocol.

Anything that feeds events into a sink (the CLI, an embedding service) only
depends on this lifecycle.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SinkConnector(Protocol):
    """Protocol that every sink connector must satisfy."""

    @property
    def sink_id(self) -> str:
        """Unique identifier for this sink instance."""
        ...

    async def start(self) -> None:
        """Initialize resources and verify the destination is reachable."""
        ...

    async def write(self, event: Mapping[str, Any]) -> bool:
        """Admit a single event; returns False if it was filtered out."""
        ...

    async def flush(self) -> None:
        """Flush any buffered writes."""
        ...

    async def stop(self) -> None:
        """Flush remaining records and release resources."""
        ...

    async def health(self) -> dict[str, Any]:
        """Return a health-check status dict."""
        ...
