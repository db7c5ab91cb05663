# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Split a container's combined output stream into typed log records.

Without a TTY, the container runtime multiplexes stdout and stderr onto one
byte stream. Each frame has an 8-byte header:

  - byte 0: stream type (1 = stdout, 2 = stderr)
  - bytes 1-3: padding (zero)
  - bytes 4-7: payload length (big-endian uint32)

With a TTY there is no framing and no stderr; output is split into lines.
"""

import logging
import struct
from collections.abc import Iterator

from .exceptions import TransientStreamError
from .records import LogOrigin, LogRecord
from .source import LogStream

logger = logging.getLogger("logfollow")

HEADER_SIZE = 8
_HEADER_FORMAT = ">BxxxI"  # 1 byte type, 3 padding, 4 byte length

STREAM_ORIGINS = {1: LogOrigin.stdout, 2: LogOrigin.stderr}
_ORIGIN_STREAMS = {origin: stream for stream, origin in STREAM_ORIGINS.items()}


def encode_frame(origin: LogOrigin | str, payload: bytes) -> bytes:
    """Build one multiplexed frame carrying ``payload``."""
    stream_type = _ORIGIN_STREAMS[LogOrigin(origin)]
    return struct.pack(_HEADER_FORMAT, stream_type, len(payload)) + payload


def parse_header(header: bytes) -> tuple[int, int]:
    """Parse an 8-byte frame header into ``(stream_type, payload_length)``."""
    stream_type, payload_length = struct.unpack(_HEADER_FORMAT, header)
    return stream_type, payload_length


def read_exact(stream: LogStream, n: int) -> bytes:
    """Read exactly ``n`` bytes, reassembling partial reads.

    Returns ``b""`` if the stream ends before the first byte. Raises
    TransientStreamError if it ends after some but not all of the bytes.
    """
    chunks = []
    remaining = n
    while remaining:
        chunk = stream.read(remaining)
        if not chunk:
            if remaining == n:
                return b""
            raise TransientStreamError(
                f"Log stream ended after {n - remaining} of {n} expected bytes"
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def split_timestamp(data: bytes) -> tuple[str | None, bytes]:
    """Separate the ``<RFC3339Nano> `` prefix the runtime puts in front of a message."""
    prefix, sep, rest = data.partition(b" ")
    if not sep or not prefix[:1].isdigit() or not prefix.endswith(b"Z"):
        return None, data
    return prefix.decode("ascii"), rest


class StreamDemultiplexer:
    """Iterate over the log records contained in a container output stream.

    Iteration consumes the underlying stream, so an instance can be iterated
    only once. It ends when the stream ends cleanly at a record boundary.

    Example:
        >>> stream = io.BytesIO(encode_frame("stderr", b"oops\\n"))
        >>> list(StreamDemultiplexer(stream))
        [LogRecord(origin=<LogOrigin.stderr: 'stderr'>, content=b'oops\\n', timestamp=None)]
    """

    read_size = 4096

    def __init__(
        self, stream: LogStream, tty: bool = False, timestamps: bool = False
    ) -> None:
        self._stream = stream
        self._tty = tty
        self._timestamps = timestamps

    def __iter__(self) -> Iterator[LogRecord]:
        if self._tty:
            return self._iter_lines()
        return self._iter_frames()

    def _make_record(self, origin: LogOrigin, data: bytes) -> LogRecord:
        timestamp = None
        if self._timestamps:
            timestamp, data = split_timestamp(data)
        return LogRecord(origin=origin, content=data, timestamp=timestamp)

    def _iter_frames(self) -> Iterator[LogRecord]:
        while True:
            header = read_exact(self._stream, HEADER_SIZE)
            if not header:
                return

            stream_type, payload_length = parse_header(header)
            if payload_length == 0:
                continue

            payload = read_exact(self._stream, payload_length)
            if not payload:
                raise TransientStreamError(
                    f"Log stream ended before a {payload_length} byte frame payload"
                )

            origin = STREAM_ORIGINS.get(stream_type)
            if origin is None:
                # 0 is stdin, 3 is an undocumented runtime error stream
                logger.warning(
                    f"Received unknown log stream type {stream_type}, treating as stdout"
                )
                origin = LogOrigin.stdout

            yield self._make_record(origin, payload)

    def _iter_lines(self) -> Iterator[LogRecord]:
        line_buffer = b""
        while True:
            data = self._stream.read(self.read_size)
            if not data:
                break

            line_buffer += data
            while b"\n" in line_buffer:
                line, line_buffer = line_buffer.split(b"\n", 1)
                yield self._make_record(LogOrigin.stdout, line + b"\n")

        # Flush incomplete line at the end of the stream
        if line_buffer:
            yield self._make_record(LogOrigin.stdout, line_buffer)
