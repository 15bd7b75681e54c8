"""WebHDFS sink connector."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

import structlog

from webhdfs_sink.batching.accumulator import BatchAccumulator, group_records
from webhdfs_sink.codecs.framing import Framing
from webhdfs_sink.config.models import SinkConfig
from webhdfs_sink.events.paths import PathTemplate
from webhdfs_sink.events.record import EventEncoder, Record
from webhdfs_sink.storage.base import RemoteStore
from webhdfs_sink.storage.webhdfs import WebHdfsClient
from webhdfs_sink.storage.writer import BatchWriter, SleepFn

logger = structlog.get_logger()

AdmissionPredicate = Callable[[Mapping[str, Any]], bool]


class SinkStartupError(RuntimeError):
    """Raised when the destination cannot be reached at startup."""


@dataclass
class SinkStats:
    records_received: int = 0
    records_filtered: int = 0
    records_written: int = 0
    records_lost: int = 0
    flushes: int = 0
    batches_committed: int = 0
    batches_lost: int = 0
    paths_created: int = 0


class WebHdfsSink:
    """Buffers events and writes them to HDFS files grouped by templated path.

    Delivery is at-least-once: a flush replayed after a crash appends the
    same bytes again.
    """

    def __init__(
        self,
        config: SinkConfig,
        *,
        store: RemoteStore | None = None,
        accept: AdmissionPredicate | None = None,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._store = store
        self._accept = accept
        self._sleep = sleep
        self._clock = clock
        self._framing = Framing.from_config(config.compression)
        self._template = PathTemplate(config.path)
        self._encoder = EventEncoder(
            message_format=config.message_format,
            remove_at_timestamp=config.remove_at_timestamp,
        )
        self._writer: BatchWriter | None = None
        self._accumulator: BatchAccumulator | None = None
        self._stopping = False
        self._stats = SinkStats()

    @property
    def sink_id(self) -> str:
        return self._config.sink_id

    @property
    def stats(self) -> SinkStats:
        return self._stats

    async def start(self) -> None:
        self._framing.ensure_available()

        if self._store is None:
            self._store = WebHdfsClient(self._config.webhdfs)
        probe = await self._store.list("/")
        if not probe.ok:
            logger.error(
                "webhdfs_sink.probe_failed",
                sink_id=self.sink_id,
                host=self._config.webhdfs.host,
                port=self._config.webhdfs.port,
                detail=probe.detail,
            )
            await self._store.close()
            msg = (
                f"WebHDFS check request failed "
                f"({self._config.webhdfs.host}:{self._config.webhdfs.port}): "
                f"{probe.detail}"
            )
            raise SinkStartupError(msg)

        self._writer = BatchWriter(
            self._store,
            self._framing,
            self._config.retry,
            max_concurrent_paths=self._config.max_concurrent_paths,
            sleep=self._sleep,
        )
        self._accumulator = BatchAccumulator(
            flush_size=self._config.buffer.flush_size,
            idle_flush_seconds=self._config.buffer.idle_flush_seconds,
            on_flush=self._commit,
            clock=self._clock,
        )
        await self._accumulator.start()
        logger.info(
            "webhdfs_sink.started",
            sink_id=self.sink_id,
            base_url=self._config.webhdfs.base_url,
            path=self._config.path,
            compression=self._config.compression.codec.value,
        )

    def _require_started(self) -> BatchAccumulator:
        if self._stopping:
            msg = "WebHdfsSink is stopping; no further events are accepted"
            raise RuntimeError(msg)
        if self._accumulator is None:
            msg = "WebHdfsSink not started; call start() first"
            raise RuntimeError(msg)
        return self._accumulator

    async def write(self, event: Mapping[str, Any]) -> bool:
        accumulator = self._require_started()
        self._stats.records_received += 1
        if self._accept is not None and not self._accept(event):
            self._stats.records_filtered += 1
            return False
        await accumulator.admit(self._encoder.encode(event))
        return True

    async def submit(self, record: Record) -> bool:
        """Admit a record whose payload was encoded by the caller."""
        accumulator = self._require_started()
        self._stats.records_received += 1
        if self._accept is not None and not self._accept(record.fields):
            self._stats.records_filtered += 1
            return False
        await accumulator.admit(record)
        return True

    async def flush(self) -> None:
        if self._accumulator is not None:
            await self._accumulator.drain()

    async def _commit(self, records: list[Record]) -> None:
        if self._writer is None:
            msg = "WebHdfsSink flushed without a writer"
            raise RuntimeError(msg)
        groups = group_records(records, self._template, now=datetime.now(UTC))

        t0 = time.monotonic()
        reports = await self._writer.write_batch(
            {path: group.payload for path, group in groups.items()}
        )
        elapsed_ms = (time.monotonic() - t0) * 1000

        self._stats.flushes += 1
        # Reports come back in the same order as the groups were submitted.
        for group, report in zip(groups.values(), reports, strict=True):
            written = group.records
            if report.ok:
                self._stats.batches_committed += 1
                self._stats.records_written += written
                if report.created:
                    self._stats.paths_created += 1
            else:
                self._stats.batches_lost += 1
                self._stats.records_lost += written

        logger.info(
            "webhdfs_sink.flushed",
            sink_id=self.sink_id,
            records=len(records),
            paths=len(groups),
            failed=sum(1 for r in reports if not r.ok),
            latency_ms=round(elapsed_ms, 2),
        )

    async def stop(self) -> None:
        """Refuse further events, then commit what is buffered and close."""
        if self._accumulator is not None:
            self._stopping = True
            try:
                await self._accumulator.stop()
            finally:
                self._accumulator = None
                self._stopping = False
        if self._store is not None:
            await self._store.close()
            self._store = None
        self._writer = None
        logger.info("webhdfs_sink.stopped", sink_id=self.sink_id)

    def _status(self) -> str:
        if self._stopping:
            return "stopping"
        return "running" if self._accumulator is not None else "stopped"

    async def health(self) -> dict[str, Any]:
        return {
            "sink_id": self.sink_id,
            "type": "webhdfs",
            "status": self._status(),
            "base_url": self._config.webhdfs.base_url,
            "buffer_size": (
                self._accumulator.pending_count if self._accumulator else 0
            ),
            **asdict(self._stats),
        }
