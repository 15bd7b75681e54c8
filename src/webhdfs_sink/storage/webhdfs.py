"""Async WebHDFS / HttpFS REST client."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from webhdfs_sink.config.models import WebHdfsConfig
from webhdfs_sink.storage.base import Operation, StoreResult

logger = structlog.get_logger()

OCTET_STREAM = {"Content-Type": "application/octet-stream"}


def _remote_exception(response: httpx.Response) -> dict[str, Any]:
    """Extract the ``RemoteException`` body HDFS attaches to error responses."""
    try:
        body = response.json()
    except ValueError:
        return {}
    if not isinstance(body, dict):
        return {}
    exc = body.get("RemoteException")
    return exc if isinstance(exc, dict) else {}


class WebHdfsClient:
    """Thin async wrapper around the WebHDFS REST API.

    In WebHDFS mode, APPEND and CREATE are two-step: the namenode answers with
    a ``307`` pointing at a datanode, and the body is sent there. In HttpFS
    mode the gateway accepts the body directly (``data=true``).
    """

    def __init__(
        self,
        config: WebHdfsConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(
                config.read_timeout_seconds,
                connect=config.open_timeout_seconds,
            ),
            follow_redirects=False,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> WebHdfsClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def _params(self, op: str, **extra: str) -> dict[str, str]:
        params = {"op": op, "user.name": self._config.user}
        params.update(extra)
        return params

    # -- Operations ------------------------------------------------------------

    async def list(self, path: str) -> StoreResult:
        try:
            resp = await self._client.get(path, params=self._params("LISTSTATUS"))
        except httpx.HTTPError as exc:
            return StoreResult.error(Operation.LIST, f"{type(exc).__name__}: {exc}")
        return self._to_result(Operation.LIST, resp)

    async def append(self, path: str, data: bytes) -> StoreResult:
        return await self._write("POST", path, data, Operation.APPEND)

    async def create(self, path: str, data: bytes) -> StoreResult:
        return await self._write(
            "PUT", path, data, Operation.CREATE, overwrite="false"
        )

    async def _write(
        self,
        method: str,
        path: str,
        data: bytes,
        operation: Operation,
        **extra: str,
    ) -> StoreResult:
        op = operation.value.upper()
        try:
            if self._config.use_httpfs:
                resp = await self._client.request(
                    method,
                    path,
                    params=self._params(op, data="true", **extra),
                    content=data,
                    headers=OCTET_STREAM,
                )
                return self._to_result(operation, resp)

            resp = await self._client.request(
                method, path, params=self._params(op, **extra)
            )
            if not resp.is_redirect:
                if resp.is_success:
                    # A namenode must redirect writes to a datanode.
                    return StoreResult.error(
                        operation,
                        f"expected redirect from namenode, got {resp.status_code}",
                    )
                if 300 <= resp.status_code < 400:
                    return StoreResult.error(
                        operation, "namenode redirect without Location header"
                    )
                return self._to_result(operation, resp)

            resp = await self._client.request(
                method, resp.headers["location"], content=data, headers=OCTET_STREAM
            )
            return self._to_result(operation, resp)
        except httpx.HTTPError as exc:
            return StoreResult.error(operation, f"{type(exc).__name__}: {exc}")

    @staticmethod
    def _to_result(operation: Operation, response: httpx.Response) -> StoreResult:
        if response.is_success:
            return StoreResult.success(operation)
        remote = _remote_exception(response)
        name = remote.get("exception", "")
        message = remote.get("message") or response.text[:200]
        prefix = f"{response.status_code} {name}" if name else str(response.status_code)
        detail = f"{prefix}: {message}"
        if response.status_code == 404 or name == "FileNotFoundException":
            return StoreResult.not_found(operation, detail)
        return StoreResult.error(operation, detail)
