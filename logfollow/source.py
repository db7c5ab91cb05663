# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Contract between the log-following engine and the thing producing logs."""

from abc import ABC, abstractmethod
from typing import Protocol


class LogStream(Protocol):
    """A readable byte stream of (possibly framed) container output.

    ``read(n)`` returns at most ``n`` bytes and returns ``b""`` only once the
    stream has ended. Connection-level failures surface as
    :class:`~logfollow.exceptions.TransientStreamError`. ``close()`` must be
    idempotent and safe to call from another thread while a read is blocked.
    """

    def read(self, n: int) -> bytes: ...

    def close(self) -> None: ...


class LogSource(ABC):
    """A resource whose output can be followed, e.g. a running container.

    Attributes:
        name: Human-readable identifier, used in log messages.
        tty: Whether output is sent raw (no multiplexing frames, no stderr).
        timestamps: Whether every frame (or line, if ``tty``) starts with an
            RFC3339Nano timestamp followed by a space.
    """

    name: str = "source"
    tty: bool = False
    timestamps: bool = False

    @abstractmethod
    def open(self, since: str | None = None, follow: bool = True) -> LogStream:
        """Open the log stream.

        Args:
            since: Only return output written at or after this RFC3339Nano
                timestamp. ``None`` returns the whole history.
            follow: Keep the stream open and deliver new output as it is written.

        Raises:
            TransientStreamError: The source could not be reached right now.
            ResourceNotFoundError: The resource does not exist.
        """

    @abstractmethod
    def is_running(self) -> bool:
        """Return whether the process behind this source is still alive.

        Consulted when a followed stream ends, to tell a clean exit from a
        dropped connection.
        """
