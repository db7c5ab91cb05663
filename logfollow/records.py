# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Log records and the timestamps attached to them."""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class LogOrigin(str, Enum):
    """Output channel a log record was written to."""

    stdout = "stdout"
    stderr = "stderr"


@dataclass(frozen=True)
class LogRecord:
    """A chunk of process output, tagged with the channel it came from.

    ``content`` holds the bytes exactly as the process wrote them, including
    any trailing newline. ``timestamp`` is the RFC3339Nano time the container
    runtime attached to the chunk, if it was asked to.
    """

    origin: LogOrigin
    content: bytes
    timestamp: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.origin, LogOrigin):
            object.__setattr__(self, "origin", LogOrigin(self.origin))
        if isinstance(self.content, (bytearray, memoryview)):
            object.__setattr__(self, "content", bytes(self.content))
        elif not isinstance(self.content, bytes):
            raise TypeError(
                f"Log content must be bytes, got {type(self.content).__name__}"
            )

    @property
    def text(self) -> str:
        """Content decoded as UTF-8 (undecodable bytes are replaced)."""
        return self.content.decode("utf-8", errors="replace")


def format_timestamp(ns: int | None = None) -> str:
    """Format nanoseconds since the epoch (default: now) as fixed-width RFC3339Nano UTC.

    Fixed width (always 9 fractional digits) keeps timestamps of the same
    stream comparable as plain strings.
    """
    if ns is None:
        ns = time.time_ns()
    seconds, nanos = divmod(ns, 1_000_000_000)
    base = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(
        "%Y-%m-%dT%H:%M:%S"
    )
    return f"{base}.{nanos:09d}Z"


def timestamp_ns(timestamp: str) -> int:
    """Parse an RFC3339(Nano) UTC timestamp into nanoseconds since the epoch."""
    if not timestamp.endswith("Z"):
        raise ValueError(f"Only UTC timestamps are supported, got {timestamp!r}")
    base, _, fraction = timestamp[:-1].partition(".")
    if fraction and not fraction.isdigit():
        raise ValueError(f"Invalid fractional seconds in timestamp {timestamp!r}")
    dt = datetime.strptime(base, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
    nanos = int(fraction[:9].ljust(9, "0"))
    return int(dt.timestamp()) * 1_000_000_000 + nanos


def timestamp_to_unix(timestamp: str) -> str:
    """Convert an RFC3339(Nano) UTC timestamp to ``<seconds>.<nanoseconds>``.

    This is the form the Docker Engine API accepts for ``since``.

    Example:
        >>> timestamp_to_unix("2024-05-01T12:00:00.5Z")
        '1714564800.500000000'
    """
    seconds, nanos = divmod(timestamp_ns(timestamp), 1_000_000_000)
    return f"{seconds}.{nanos:09d}"
