"""Append-with-create-fallback commit protocol.

For each (path, payload):

1. ``append`` to the existing object.
2. If the object does not exist, ``create`` it once with the framing header
   (if any) followed by the payload. Create failures are not retried.
3. Any other append failure is retried after ``interval * attempt`` seconds
   until ``max_attempts`` attempts were made; the batch is then logged as lost.

Failures are scoped to one path and never raised to the caller. Writes to the
same path are chained in submission order, also across flush cycles; distinct
paths are written concurrently.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_incrementing,
)

from webhdfs_sink.codecs.framing import Framing
from webhdfs_sink.config.models import RetryConfig
from webhdfs_sink.storage.base import Operation, RemoteStore, StoreResult, StoreStatus

logger = structlog.get_logger()

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class CommitReport:
    """Outcome of committing one payload to one path."""

    path: str
    ok: bool
    attempts: int
    size: int
    created: bool = False
    error: str | None = None


def _is_transient(result: StoreResult) -> bool:
    return result.status == StoreStatus.ERROR and result.operation == Operation.APPEND


def _last_result(retry_state: RetryCallState) -> StoreResult:
    if retry_state.outcome is None:
        return StoreResult.error(Operation.APPEND, "no attempt was made")
    result: StoreResult = retry_state.outcome.result()
    return result


class BatchWriter:
    """Commits grouped payloads to a :class:`RemoteStore`."""

    def __init__(
        self,
        store: RemoteStore,
        framing: Framing,
        retry: RetryConfig,
        *,
        max_concurrent_paths: int = 4,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._store = store
        self._framing = framing
        self._retry = retry
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max_concurrent_paths)
        self._inflight: dict[str, asyncio.Task[CommitReport]] = {}

    @property
    def max_attempts(self) -> int:
        return self._retry.max_attempts if self._retry.enabled else 1

    def _retrying(self, path: str) -> AsyncRetrying:
        def _log_retry(retry_state: RetryCallState) -> None:
            result = retry_state.outcome.result() if retry_state.outcome else None
            action = retry_state.next_action
            logger.warning(
                "webhdfs_writer.retrying",
                path=path,
                attempt=retry_state.attempt_number,
                max_attempts=self.max_attempts,
                delay=action.sleep if action is not None else None,
                detail=result.detail if result else None,
            )

        return AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(
                start=self._retry.interval_seconds,
                increment=self._retry.interval_seconds,
            ),
            retry=retry_if_result(_is_transient),
            before_sleep=_log_retry,
            retry_error_callback=_last_result,
        )

    async def _attempt(self, path: str, payload: bytes) -> StoreResult:
        result = await self._store.append(path, payload)
        if result.status != StoreStatus.NOT_FOUND:
            return result
        logger.debug("webhdfs_writer.creating", path=path)
        return await self._store.create(path, self._framing.create_header() + payload)

    async def commit(self, path: str, payload: bytes) -> CommitReport:
        """Write an already-framed *payload* to *path*."""
        retrying = self._retrying(path)
        result = await retrying(self._attempt, path, payload)
        attempts = retrying.statistics.get("attempt_number", 1)
        created = result.ok and result.operation == Operation.CREATE

        if result.ok:
            logger.debug(
                "webhdfs_writer.committed",
                path=path,
                bytes=len(payload),
                attempts=attempts,
                created=created,
            )
            return CommitReport(path, True, attempts, len(payload), created=created)

        if result.operation == Operation.CREATE:
            logger.error(
                "webhdfs_writer.create_failed",
                path=path,
                bytes=len(payload),
                detail=result.detail,
            )
        else:
            logger.error(
                "webhdfs_writer.batch_lost",
                path=path,
                bytes=len(payload),
                attempts=attempts,
                detail=result.detail,
            )
        return CommitReport(
            path, False, attempts, len(payload), error=result.detail or "write failed"
        )

    async def _commit_after(
        self,
        previous: asyncio.Task[CommitReport] | None,
        path: str,
        payload: bytes,
    ) -> CommitReport:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            async with self._semaphore:
                return await self.commit(path, payload)
        except Exception as exc:
            logger.exception("webhdfs_writer.commit_error", path=path)
            return CommitReport(path, False, 0, len(payload), error=repr(exc))

    def _submit(self, path: str, payload: bytes) -> asyncio.Task[CommitReport]:
        previous = self._inflight.get(path)
        task = asyncio.create_task(self._commit_after(previous, path, payload))
        self._inflight[path] = task

        def _release(done: asyncio.Task[CommitReport]) -> None:
            if self._inflight.get(path) is done:
                del self._inflight[path]

        task.add_done_callback(_release)
        return task

    async def write_batch(self, groups: Mapping[str, bytes]) -> list[CommitReport]:
        """Frame and commit one flush cycle's grouped payloads.

        The commits run as their own tasks; cancelling the caller leaves them
        running to completion.
        """
        tasks = [
            self._submit(path + self._framing.suffix, self._framing.encode(data))
            for path, data in groups.items()
        ]
        if not tasks:
            return []
        return list(await asyncio.shield(asyncio.gather(*tasks)))
