"""Payload framing: raw, gzip and Snappy (file / stream) encodings.

Snappy framing follows the layout Hadoop's ``SnappyCodec`` tooling and Hive
expect:

- *file*: ``MAGIC + version + min_version`` once at the start of the object,
  then ``[compressed_len][compressed]`` blocks.
- *stream*: ``[raw_len][compressed_len][compressed]`` chunks with no header, so
  new chunks can be appended to an existing object at any time.

All lengths are 4-byte big-endian unsigned integers.
"""

from __future__ import annotations

import gzip
import struct
from dataclasses import dataclass
from types import ModuleType

from webhdfs_sink.config.models import (
    SNAPPY_MAX_BUFSIZE,
    CompressionCodec,
    CompressionConfig,
    SnappyFormat,
)

MAGIC = b"\x82SNAPPY\x00"
DEFAULT_VERSION = 1
MINIMUM_COMPATIBLE_VERSION = 1
DEFAULT_SNAPPY_BUFSIZE = 32768

_HEADER = struct.Struct(">8sII")
_BLOCK_LEN = struct.Struct(">I")
_CHUNK_LENS = struct.Struct(">II")


class FramingError(ValueError):
    """Raised when framed data cannot be decoded."""


def _snappy() -> ModuleType:
    try:
        import snappy
    except ImportError:
        msg = (
            "python-snappy is required for snappy compression. "
            "Install it with: pip install webhdfs-sink[snappy]"
        )
        raise ImportError(msg) from None
    return snappy


# -- gzip ----------------------------------------------------------------------


def compress_gzip(data: bytes) -> bytes:
    """Wrap *data* in a single gzip member."""
    return gzip.compress(data)


def decompress_gzip(data: bytes) -> bytes:
    """Decode one or more concatenated gzip members."""
    return gzip.decompress(data)


# -- snappy file ---------------------------------------------------------------


def snappy_file_header() -> bytes:
    return _HEADER.pack(MAGIC, DEFAULT_VERSION, MINIMUM_COMPATIBLE_VERSION)


def compress_snappy_file(data: bytes) -> bytes:
    """Compress *data* as a single length-prefixed block (no header)."""
    compressed = _snappy().compress(data)
    return _BLOCK_LEN.pack(len(compressed)) + compressed


def decode_snappy_file(data: bytes) -> bytes:
    """Decode a Snappy file-format object.

    The magic header is optional so that block runs read back from the
    middle of an object (or without the header) decode too.
    """
    snappy = _snappy()
    view = memoryview(data)
    pos = 0
    if bytes(view[: len(MAGIC)]) == MAGIC:
        if len(view) < _HEADER.size:
            raise FramingError("truncated snappy file header")
        _magic, _version, min_version = _HEADER.unpack_from(view, 0)
        if min_version > DEFAULT_VERSION:
            msg = f"unsupported snappy file version {min_version}"
            raise FramingError(msg)
        pos = _HEADER.size

    out = bytearray()
    while pos < len(view):
        if len(view) - pos < _BLOCK_LEN.size:
            raise FramingError("truncated snappy block length")
        (size,) = _BLOCK_LEN.unpack_from(view, pos)
        pos += _BLOCK_LEN.size
        if len(view) - pos < size:
            raise FramingError("truncated snappy block")
        out += snappy.decompress(bytes(view[pos : pos + size]))
        pos += size
    return bytes(out)


# -- snappy stream -------------------------------------------------------------


def compress_snappy_stream(
    data: bytes, chunk_size: int = DEFAULT_SNAPPY_BUFSIZE
) -> bytes:
    """Compress *data* into independent chunks of at most *chunk_size* bytes."""
    if not 1 <= chunk_size <= SNAPPY_MAX_BUFSIZE:
        msg = f"chunk_size must be between 1 and {SNAPPY_MAX_BUFSIZE}, got {chunk_size}"
        raise ValueError(msg)
    snappy = _snappy()
    out = bytearray()
    for start in range(0, len(data), chunk_size):
        chunk = data[start : start + chunk_size]
        compressed = snappy.compress(chunk)
        out += _CHUNK_LENS.pack(len(chunk), len(compressed))
        out += compressed
    return bytes(out)


def decode_snappy_stream(data: bytes) -> bytes:
    snappy = _snappy()
    view = memoryview(data)
    pos = 0
    out = bytearray()
    while pos < len(view):
        if len(view) - pos < _CHUNK_LENS.size:
            raise FramingError("truncated snappy chunk header")
        raw_len, size = _CHUNK_LENS.unpack_from(view, pos)
        pos += _CHUNK_LENS.size
        if len(view) - pos < size:
            raise FramingError("truncated snappy chunk")
        chunk = snappy.decompress(bytes(view[pos : pos + size]))
        if len(chunk) != raw_len:
            msg = f"snappy chunk length mismatch: header {raw_len}, got {len(chunk)}"
            raise FramingError(msg)
        out += chunk
        pos += size
    return bytes(out)


# -- selection -----------------------------------------------------------------


@dataclass(frozen=True)
class Framing:
    """Encoding applied to each grouped payload before it is written."""

    codec: CompressionCodec = CompressionCodec.NONE
    snappy_format: SnappyFormat = SnappyFormat.STREAM
    snappy_bufsize: int = DEFAULT_SNAPPY_BUFSIZE

    @classmethod
    def from_config(cls, config: CompressionConfig) -> Framing:
        return cls(
            codec=config.codec,
            snappy_format=config.snappy_format,
            snappy_bufsize=config.snappy_bufsize,
        )

    @property
    def suffix(self) -> str:
        if self.codec == CompressionCodec.GZIP:
            return ".gz"
        if self.codec == CompressionCodec.SNAPPY:
            return ".snappy"
        return ""

    def ensure_available(self) -> None:
        """Fail fast when the selected codec's backend is not installed."""
        if self.codec == CompressionCodec.SNAPPY:
            _snappy()

    def encode(self, data: bytes) -> bytes:
        if self.codec == CompressionCodec.GZIP:
            return compress_gzip(data)
        if self.codec == CompressionCodec.SNAPPY:
            if self.snappy_format == SnappyFormat.FILE:
                return compress_snappy_file(data)
            return compress_snappy_stream(data, self.snappy_bufsize)
        return data

    def create_header(self) -> bytes:
        """Bytes that must precede the payload when a new object is created."""
        if (
            self.codec == CompressionCodec.SNAPPY
            and self.snappy_format == SnappyFormat.FILE
        ):
            return snappy_file_header()
        return b""

    def decode(self, data: bytes) -> bytes:
        """Decode the full contents of an object written with this framing."""
        if self.codec == CompressionCodec.GZIP:
            return decompress_gzip(data)
        if self.codec == CompressionCodec.SNAPPY:
            if self.snappy_format == SnappyFormat.FILE:
                return decode_snappy_file(data)
            return decode_snappy_stream(data)
        return data
