"""Size- and idle-time-triggered record buffer."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

import structlog

from webhdfs_sink.events.paths import PathTemplate
from webhdfs_sink.events.record import Record

logger = structlog.get_logger()

FlushHandler = Callable[[list[Record]], Awaitable[None]]

NEWLINE = b"\n"


@dataclass(frozen=True)
class PathGroup:
    """Concatenated payload bound for one destination path."""

    payload: bytes
    records: int


def group_records(
    records: Iterable[Record], template: PathTemplate, now: datetime
) -> dict[str, PathGroup]:
    """Concatenate record payloads per resolved destination path.

    Each payload is terminated by exactly one newline (added only when it is
    missing). Within a path, bytes keep the order the records arrived in.
    Records without a timestamp resolve date patterns against *now*.
    """
    buffers: dict[str, bytearray] = {}
    counts: dict[str, int] = {}
    for record in records:
        path = template.resolve(record.fields, record.timestamp or now)
        buf = buffers.setdefault(path, bytearray())
        buf += record.payload
        if not record.payload.endswith(NEWLINE):
            buf += NEWLINE
        counts[path] = counts.get(path, 0) + 1
    return {
        path: PathGroup(payload=bytes(buf), records=counts[path])
        for path, buf in buffers.items()
    }


class BatchAccumulator:
    """Buffers records until ``flush_size`` is reached or the buffer goes idle.

    The pending list is swapped out under a lock, so concurrent ``admit`` and
    ``tick`` calls never lose or duplicate a record; the flush handler itself
    runs outside the lock. Each flush runs as its own task behind
    ``asyncio.shield``: cancelling the caller that triggered it does not cancel
    the flush, and ``stop`` waits for every flush still in flight.
    """

    def __init__(
        self,
        *,
        flush_size: int,
        idle_flush_seconds: float,
        on_flush: FlushHandler,
        tick_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if flush_size < 1:
            msg = f"flush_size must be >= 1, got {flush_size}"
            raise ValueError(msg)
        self._flush_size = flush_size
        self._idle_flush_seconds = idle_flush_seconds
        self._on_flush = on_flush
        self._tick_interval = tick_interval or idle_flush_seconds / 2
        self._clock = clock
        self._pending: list[Record] = []
        self._last_flush = clock()
        self._lock = asyncio.Lock()
        self._tick_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._closed = False
        self._flushes: set[asyncio.Future[None]] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def running(self) -> bool:
        return self._tick_task is not None

    @property
    def inflight_flushes(self) -> int:
        return len(self._flushes)

    def _take(self) -> list[Record]:
        batch = self._pending
        self._pending = []
        self._last_flush = self._clock()
        return batch

    async def _flush(self, batch: list[Record]) -> None:
        flush = asyncio.ensure_future(self._on_flush(batch))
        self._flushes.add(flush)
        flush.add_done_callback(self._flushes.discard)
        await asyncio.shield(flush)

    async def admit(self, record: Record) -> None:
        async with self._lock:
            if self._closed:
                msg = "accumulator is stopped; record not admitted"
                raise RuntimeError(msg)
            self._pending.append(record)
            if len(self._pending) < self._flush_size:
                return
            batch = self._take()
        await self._flush(batch)

    async def tick(self) -> None:
        async with self._lock:
            if not self._pending:
                return
            if self._clock() - self._last_flush < self._idle_flush_seconds:
                return
            batch = self._take()
        logger.debug("accumulator.idle_flush", records=len(batch))
        await self._flush(batch)

    async def drain(self) -> None:
        async with self._lock:
            if not self._pending:
                return
            batch = self._take()
        await self._flush(batch)

    async def start(self) -> None:
        if self._tick_task is None:
            self._closed = False
            self._stop_event.clear()
            self._tick_task = asyncio.create_task(self._tick_loop())

    async def stop(self) -> None:
        """Refuse new records and flush what is buffered once the timer exits.

        Returns once every flush started before or during the call has
        completed.
        """
        self._closed = True
        if self._tick_task is not None:
            self._stop_event.set()
            await self._tick_task
            self._tick_task = None
        await self.drain()
        if self._flushes:
            await asyncio.wait(set(self._flushes))

    async def _tick_loop(self) -> None:
        while not self._stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._tick_interval
                )
                return
            try:
                await self.tick()
            except Exception:
                logger.exception("accumulator.tick_error")
