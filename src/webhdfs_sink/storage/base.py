"""Remote store protocol and the tagged result its calls return.

A missing object is an expected outcome of ``append`` (it drives the
create-on-first-write path), so store calls report it as a
:class:`StoreResult` value instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable


class StoreStatus(StrEnum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ERROR = "error"


class Operation(StrEnum):
    LIST = "list"
    APPEND = "append"
    CREATE = "create"


@dataclass(frozen=True)
class StoreResult:
    operation: Operation
    status: StoreStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == StoreStatus.OK

    @classmethod
    def success(cls, operation: Operation) -> StoreResult:
        return cls(operation, StoreStatus.OK)

    @classmethod
    def not_found(cls, operation: Operation, detail: str = "") -> StoreResult:
        return cls(operation, StoreStatus.NOT_FOUND, detail)

    @classmethod
    def error(cls, operation: Operation, detail: str) -> StoreResult:
        return cls(operation, StoreStatus.ERROR, detail)


@runtime_checkable
class RemoteStore(Protocol):
    """Minimal append-oriented filesystem interface."""

    async def list(self, path: str) -> StoreResult:
        """Probe *path* (used as a startup health check)."""
        ...

    async def append(self, path: str, data: bytes) -> StoreResult:
        """Append to an existing object; ``NOT_FOUND`` if it does not exist."""
        ...

    async def create(self, path: str, data: bytes) -> StoreResult:
        """Create a new object holding *data*."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
