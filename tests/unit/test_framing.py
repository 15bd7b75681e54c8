"""Unit tests for payload framing codecs."""

from __future__ import annotations

import gzip
import struct
import sys

import pytest
import snappy

from webhdfs_sink.codecs.framing import (
    MAGIC,
    Framing,
    FramingError,
    compress_gzip,
    compress_snappy_file,
    compress_snappy_stream,
    decode_snappy_file,
    decode_snappy_stream,
    snappy_file_header,
)
from webhdfs_sink.config.models import (
    CompressionCodec,
    CompressionConfig,
    SnappyFormat,
)

CHUNK = 32768


class TestGzip:
    def test_single_member_roundtrip(self):
        data = b'{"a":1}\n{"a":2}\n'
        out = compress_gzip(data)
        assert out[:2] == b"\x1f\x8b"
        assert gzip.decompress(out) == data

    def test_appended_members_decode_in_order(self):
        framing = Framing(codec=CompressionCodec.GZIP)
        obj = framing.encode(b"first\n") + framing.encode(b"second\n")
        assert framing.decode(obj) == b"first\nsecond\n"


class TestSnappyFile:
    def test_header_layout(self):
        header = snappy_file_header()
        assert len(header) == 16
        assert header[:8] == MAGIC == b"\x82SNAPPY\x00"
        assert struct.unpack(">II", header[8:]) == (1, 1)

    def test_block_is_length_prefixed(self):
        data = b"hello world\n" * 10
        block = compress_snappy_file(data)
        (size,) = struct.unpack(">I", block[:4])
        assert size == len(block) - 4
        assert snappy.decompress(block[4:]) == data

    def test_block_carries_no_header(self):
        assert not compress_snappy_file(b"x\n").startswith(MAGIC)

    def test_decode_header_plus_appended_blocks(self):
        obj = (
            snappy_file_header()
            + compress_snappy_file(b"one\n")
            + compress_snappy_file(b"two\n")
        )
        assert decode_snappy_file(obj) == b"one\ntwo\n"

    def test_decode_truncated_block_raises(self):
        block = compress_snappy_file(b"payload" * 20)
        with pytest.raises(FramingError, match="truncated"):
            decode_snappy_file(block[:-3])


class TestSnappyStream:
    @pytest.mark.parametrize("length", [0, 1, CHUNK, CHUNK + 1])
    def test_roundtrip_boundary_lengths(self, length: int):
        data = bytes(i % 251 for i in range(length))
        assert decode_snappy_stream(compress_snappy_stream(data, CHUNK)) == data

    def test_empty_input_yields_no_chunks(self):
        assert compress_snappy_stream(b"") == b""

    def test_chunk_layout(self):
        data = b"a" * 10 + b"b" * 10
        out = compress_snappy_stream(data, chunk_size=10)
        raw_len, size = struct.unpack(">II", out[:8])
        assert raw_len == 10
        first = out[8 : 8 + size]
        assert snappy.decompress(first) == b"a" * 10
        raw_len2, size2 = struct.unpack(">II", out[8 + size : 16 + size])
        assert raw_len2 == 10
        assert len(out) == 16 + size + size2

    def test_max_chunk_size_split(self):
        data = b"z" * (CHUNK + 1)
        out = compress_snappy_stream(data, CHUNK)
        raw_len, size = struct.unpack(">II", out[:8])
        assert raw_len == CHUNK
        raw_len2, _ = struct.unpack(">II", out[8 + size : 16 + size])
        assert raw_len2 == 1

    def test_appended_streams_decode_as_one(self):
        obj = compress_snappy_stream(b"one\n") + compress_snappy_stream(b"two\n")
        assert decode_snappy_stream(obj) == b"one\ntwo\n"

    @pytest.mark.parametrize("chunk_size", [0, 65537])
    def test_chunk_size_bounds(self, chunk_size: int):
        with pytest.raises(ValueError, match="chunk_size"):
            compress_snappy_stream(b"data", chunk_size)

    def test_length_mismatch_detected(self):
        good = compress_snappy_stream(b"abcdef")
        _, size = struct.unpack(">II", good[:8])
        bad = struct.pack(">II", 99, size) + good[8:]
        with pytest.raises(FramingError, match="mismatch"):
            decode_snappy_stream(bad)


class TestFraming:
    def test_from_config(self):
        cfg = CompressionConfig(
            codec="snappy", snappy_format="file", snappy_bufsize=1024
        )
        framing = Framing.from_config(cfg)
        assert framing.codec == CompressionCodec.SNAPPY
        assert framing.snappy_format == SnappyFormat.FILE
        assert framing.snappy_bufsize == 1024

    @pytest.mark.parametrize(
        ("codec", "suffix"),
        [
            (CompressionCodec.NONE, ""),
            (CompressionCodec.GZIP, ".gz"),
            (CompressionCodec.SNAPPY, ".snappy"),
        ],
    )
    def test_suffix(self, codec: CompressionCodec, suffix: str):
        assert Framing(codec=codec).suffix == suffix

    def test_none_is_identity(self):
        assert Framing().encode(b"raw\n") == b"raw\n"
        assert Framing().create_header() == b""

    def test_only_snappy_file_has_create_header(self):
        assert Framing(codec=CompressionCodec.GZIP).create_header() == b""
        assert (
            Framing(
                codec=CompressionCodec.SNAPPY, snappy_format=SnappyFormat.STREAM
            ).create_header()
            == b""
        )
        assert (
            Framing(
                codec=CompressionCodec.SNAPPY, snappy_format=SnappyFormat.FILE
            ).create_header()
            == snappy_file_header()
        )

    def test_stream_encode_respects_bufsize(self):
        framing = Framing(codec=CompressionCodec.SNAPPY, snappy_bufsize=4)
        out = framing.encode(b"abcdefgh")
        raw_len, _ = struct.unpack(">II", out[:8])
        assert raw_len == 4
        assert framing.decode(out) == b"abcdefgh"

    def test_ensure_available_with_snappy_installed(self):
        Framing(codec=CompressionCodec.SNAPPY).ensure_available()

    def test_ensure_available_reports_missing_module(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "snappy", None)
        with pytest.raises(ImportError, match="pip install webhdfs-sink\\[snappy\\]"):
            Framing(codec=CompressionCodec.SNAPPY).ensure_available()

    def test_ensure_available_noop_without_snappy(self):
        Framing(codec=CompressionCodec.GZIP).ensure_available()
