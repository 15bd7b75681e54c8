"""Pydantic configuration models for the WebHDFS sink."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

SNAPPY_MAX_BUFSIZE = 65536


class CompressionCodec(StrEnum):
    """Supported payload compression codecs."""

    NONE = "none"
    GZIP = "gzip"
    SNAPPY = "snappy"


class SnappyFormat(StrEnum):
    """Snappy block framing variants."""

    # Self-describing chunks, safe to append to (Hive compatible).
    STREAM = "stream"
    # Magic header once per file followed by length-prefixed blocks.
    FILE = "file"


class WebHdfsConfig(BaseModel):
    """Namenode (WebHDFS) or HttpFS gateway connection settings."""

    host: str
    port: int = Field(default=50070, ge=1, le=65535)
    user: str
    use_httpfs: bool = False
    use_ssl: bool = False
    open_timeout_seconds: float = Field(default=30.0, gt=0)
    read_timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.host}:{self.port}/webhdfs/v1"


class BufferConfig(BaseModel):
    """Flush triggers for the batch accumulator."""

    flush_size: int = Field(default=500, ge=1)
    idle_flush_seconds: float = Field(default=1.0, gt=0)


class CompressionConfig(BaseModel):
    """Payload compression settings."""

    codec: CompressionCodec = CompressionCodec.NONE
    snappy_format: SnappyFormat = SnappyFormat.STREAM
    # Only used by the stream format.
    snappy_bufsize: int = Field(default=32768, ge=1, le=SNAPPY_MAX_BUFSIZE)


class RetryConfig(BaseModel):
    """Retry / backoff configuration for failed appends."""

    enabled: bool = True
    interval_seconds: float = Field(default=0.5, gt=0)
    max_attempts: int = Field(default=5, ge=1)


class SinkConfig(BaseModel, extra="forbid"):
    """Configuration for a single WebHDFS sink instance."""

    sink_id: str = "webhdfs"
    webhdfs: WebHdfsConfig
    # Event fields and Joda date patterns may be used, e.g.
    # "/user/logstash/dt=%{+YYYY-MM-dd}/%{host}-%{+HH}.log"
    path: str
    message_format: str | None = None
    # Hive does not like a leading "@"; the field is still used for the path.
    remove_at_timestamp: bool = True
    max_concurrent_paths: int = Field(default=4, ge=1)
    buffer: BufferConfig = BufferConfig()
    compression: CompressionConfig = CompressionConfig()
    retry: RetryConfig = RetryConfig()

    @field_validator("path")
    @classmethod
    def validate_absolute_path(cls, v: str) -> str:
        if not v.startswith("/"):
            msg = f"path '{v}' must be absolute (start with '/')"
            raise ValueError(msg)
        return v
