"""Health probes for the sink's external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

import httpx
import structlog

from webhdfs_sink.codecs.framing import Framing
from webhdfs_sink.config.models import CompressionCodec, SinkConfig, WebHdfsConfig

logger = structlog.get_logger()


class Status(StrEnum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    name: str
    status: Status = Status.UNKNOWN
    detail: str = ""


@dataclass
class SinkHealth:
    components: list[ComponentHealth] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(c.status == Status.HEALTHY for c in self.components)

    @property
    def summary(self) -> dict[str, str]:
        return {c.name: c.status.value for c in self.components}


def check_webhdfs(
    config: WebHdfsConfig, *, transport: httpx.BaseTransport | None = None
) -> ComponentHealth:
    """Probe the namenode / HttpFS gateway with a LISTSTATUS of ``/``."""
    name = "httpfs" if config.use_httpfs else "webhdfs"
    try:
        with httpx.Client(
            base_url=config.base_url,
            timeout=httpx.Timeout(
                config.read_timeout_seconds, connect=config.open_timeout_seconds
            ),
            transport=transport,
        ) as client:
            resp = client.get(
                "/", params={"op": "LISTSTATUS", "user.name": config.user}
            )
            resp.raise_for_status()
            statuses = resp.json().get("FileStatuses", {}).get("FileStatus", [])
        return ComponentHealth(
            name=name,
            status=Status.HEALTHY,
            detail=f"{config.host}:{config.port} - {len(statuses)} entries under /",
        )
    except Exception as exc:
        logger.debug("health.webhdfs_unreachable", host=config.host, error=str(exc))
        return ComponentHealth(name=name, status=Status.UNHEALTHY, detail=str(exc))


def check_compression(config: SinkConfig) -> ComponentHealth:
    """Verify the configured compression backend can be imported."""
    codec = config.compression.codec
    try:
        Framing.from_config(config.compression).ensure_available()
    except ImportError as exc:
        return ComponentHealth(
            name="compression", status=Status.UNHEALTHY, detail=str(exc)
        )
    detail = codec.value
    if codec == CompressionCodec.SNAPPY:
        detail += f" ({config.compression.snappy_format.value})"
    return ComponentHealth(name="compression", status=Status.HEALTHY, detail=detail)


def check_sink_health(config: SinkConfig) -> SinkHealth:
    """Run all health checks and return the aggregated result."""
    return SinkHealth(
        components=[check_webhdfs(config.webhdfs), check_compression(config)]
    )
