"""Shared fixtures: an in-memory remote store, a recording sleep, log reset."""

from __future__ import annotations

import logging
from collections import deque

import pytest
import structlog

from webhdfs_sink.storage.base import Operation, StoreResult


class FakeStore:
    """In-memory append/create store with scriptable failures.

    ``append_failures`` / ``create_failures`` are queues of error details;
    each call pops one and fails with it while the queue is non-empty.
    Set ``fail_all_appends`` to fail every append.
    """

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.append_failures: deque[str] = deque()
        self.create_failures: deque[str] = deque()
        self.fail_all_appends = False
        self.list_result: StoreResult = StoreResult.success(Operation.LIST)
        self.closed = False

    async def list(self, path: str) -> StoreResult:
        self.calls.append(("list", path))
        return self.list_result

    async def append(self, path: str, data: bytes) -> StoreResult:
        self.calls.append(("append", path))
        if self.fail_all_appends:
            return StoreResult.error(Operation.APPEND, "lease held by another writer")
        if self.append_failures:
            return StoreResult.error(Operation.APPEND, self.append_failures.popleft())
        if path not in self.files:
            return StoreResult.not_found(Operation.APPEND, "404 FileNotFoundException")
        self.files[path] += data
        return StoreResult.success(Operation.APPEND)

    async def create(self, path: str, data: bytes) -> StoreResult:
        self.calls.append(("create", path))
        if self.create_failures:
            return StoreResult.error(Operation.CREATE, self.create_failures.popleft())
        self.files[path] = data
        return StoreResult.success(Operation.CREATE)

    async def close(self) -> None:
        self.closed = True

    def count(self, op: str, path: str | None = None) -> int:
        return sum(1 for o, p in self.calls if o == op and (path is None or p == path))


class RecordingSleep:
    """Drop-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def restore_logging():
    """Undo ``configure_logging`` side effects on the root logger and structlog."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    structlog.reset_defaults()
