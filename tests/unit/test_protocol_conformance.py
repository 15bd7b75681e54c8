"""Protocol conformance tests: implementations satisfy their protocols."""

from __future__ import annotations

from webhdfs_sink.config.models import SinkConfig, WebHdfsConfig
from webhdfs_sink.sinks.base import SinkConnector
from webhdfs_sink.sinks.webhdfs import WebHdfsSink
from webhdfs_sink.storage.base import RemoteStore
from webhdfs_sink.storage.webhdfs import WebHdfsClient


class TestProtocolConformance:
    async def test_webhdfs_client_satisfies_remote_store(self):
        client = WebHdfsClient(WebHdfsConfig(host="namenode", user="hadoop"))
        assert isinstance(client, RemoteStore)
        await client.close()

    def test_fake_store_satisfies_remote_store(self, store):
        assert isinstance(store, RemoteStore)

    def test_webhdfs_sink_satisfies_sink_connector(self, store):
        config = SinkConfig(
            webhdfs=WebHdfsConfig(host="namenode", user="hadoop"),
            path="/logs/a.log",
        )
        assert isinstance(WebHdfsSink(config, store=store), SinkConnector)
