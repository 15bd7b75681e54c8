"""Buffered, path-partitioned event sink for HDFS over WebHDFS/HttpFS."""

from webhdfs_sink.config.models import SinkConfig
from webhdfs_sink.events.record import Record
from webhdfs_sink.sinks.webhdfs import SinkStartupError, WebHdfsSink

__all__ = ["Record", "SinkConfig", "SinkStartupError", "WebHdfsSink"]
__version__ = "0.1.0"
