"""Unit tests for the dependency health probes."""

from __future__ import annotations

import sys

import httpx
import pytest

from webhdfs_sink.config.models import SinkConfig, WebHdfsConfig
from webhdfs_sink.observability.health import (
    ComponentHealth,
    SinkHealth,
    Status,
    check_compression,
    check_webhdfs,
)
from webhdfs_sink.observability.logging import configure_logging

WEBHDFS = WebHdfsConfig(host="namenode", user="hadoop")


def _make_config(**compression) -> SinkConfig:
    return SinkConfig(webhdfs=WEBHDFS, path="/logs/a.log", compression=compression)


class TestCheckWebhdfs:
    def test_healthy(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"FileStatuses": {"FileStatus": [{"pathSuffix": "user"}]}},
            )

        result = check_webhdfs(WEBHDFS, transport=httpx.MockTransport(handler))

        assert result.status == Status.HEALTHY
        assert result.name == "webhdfs"
        assert result.detail == "namenode:50070 - 1 entries under /"
        assert seen[0].url.path == "/webhdfs/v1/"
        assert seen[0].url.params["op"] == "LISTSTATUS"
        assert seen[0].url.params["user.name"] == "hadoop"

    def test_server_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        result = check_webhdfs(WEBHDFS, transport=transport)
        assert result.status == Status.UNHEALTHY

    def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = check_webhdfs(WEBHDFS, transport=httpx.MockTransport(handler))
        assert result.status == Status.UNHEALTHY
        assert "connection refused" in result.detail

    def test_httpfs_name(self):
        cfg = WebHdfsConfig(host="gw", port=14000, user="u", use_httpfs=True)
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"FileStatuses": {}})
        )
        result = check_webhdfs(cfg, transport=transport)
        assert result.name == "httpfs"
        assert result.status == Status.HEALTHY


class TestCheckCompression:
    def test_none(self):
        result = check_compression(_make_config())
        assert result.status == Status.HEALTHY
        assert result.detail == "none"

    def test_snappy_available(self):
        result = check_compression(_make_config(codec="snappy", snappy_format="file"))
        assert result.status == Status.HEALTHY
        assert result.detail == "snappy (file)"

    def test_snappy_missing(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setitem(sys.modules, "snappy", None)
        result = check_compression(_make_config(codec="snappy"))
        assert result.status == Status.UNHEALTHY
        assert "python-snappy" in result.detail


class TestSinkHealth:
    def test_aggregate(self):
        health = SinkHealth(
            components=[
                ComponentHealth("webhdfs", Status.HEALTHY),
                ComponentHealth("compression", Status.UNHEALTHY),
            ]
        )
        assert not health.healthy
        assert health.summary == {"webhdfs": "healthy", "compression": "unhealthy"}


@pytest.mark.usefixtures("restore_logging")
class TestConfigureLogging:
    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("chatty")

    @pytest.mark.parametrize("json_logs", [False, True])
    def test_known_level(self, json_logs: bool):
        configure_logging("debug", json_logs=json_logs)
