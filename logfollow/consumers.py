# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Log consumers: the receiving end of a log router."""

import threading
import time
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from .exceptions import (
    AlreadyWaitingError,
    CancellationError,
    WaitCancelledError,
    WaitTimeoutError,
)
from .records import LogOrigin, LogRecord

# Granularity at which waits with a cancel event re-check it
_CANCEL_POLL_INTERVAL = 0.05


@runtime_checkable
class LogConsumer(Protocol):
    """Anything that accepts log records.

    ``accept`` is called on the producer's thread. Implementations must state
    whether it may block: a blocking ``accept`` stalls the producer, and with
    it every other consumer of the same source.
    """

    def accept(self, record: LogRecord) -> None: ...


def wait_for_event(
    event: threading.Event,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> None:
    """Block until ``event`` is set.

    Raises:
        WaitTimeoutError: ``timeout`` seconds passed first.
        WaitCancelledError: ``cancel`` was set first.
    """
    if cancel is None:
        if not event.wait(timeout):
            raise WaitTimeoutError(f"Timed out after {timeout} seconds")
        return

    deadline = None if timeout is None else time.monotonic() + timeout
    while not event.is_set():
        if cancel.is_set():
            raise WaitCancelledError("Wait was cancelled")
        if deadline is None:
            step = _CANCEL_POLL_INTERVAL
        else:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WaitTimeoutError(f"Timed out after {timeout} seconds")
            step = min(remaining, _CANCEL_POLL_INTERVAL)
        event.wait(step)


class _PendingWait:
    def __init__(self, target: str) -> None:
        self.target = target
        self.done = threading.Event()


class BufferingConsumer:
    """Collect the text of every record and allow waiting for a specific message.

    ``accept`` never blocks for longer than it takes to append to the buffer.

    Example:
        >>> consumer = BufferingConsumer()
        >>> producer.follow(consumer)
        >>> consumer.wait_for("ready", timeout=5)
        >>> consumer.messages()
        ('starting\\n', 'ready\\n')
    """

    def __init__(self) -> None:
        # Guards both the messages and the pending wait
        self._lock = threading.Lock()
        self._messages: list[str] = []
        self._pending: _PendingWait | None = None

    def accept(self, record: LogRecord) -> None:
        """Append the record's text and release a matching waiter."""
        text = record.text
        with self._lock:
            self._messages.append(text)
            pending = self._pending
            if pending is not None and pending.target in text:
                self._pending = None
                pending.done.set()

    def messages(self) -> tuple[str, ...]:
        """Return the messages received so far."""
        with self._lock:
            return tuple(self._messages)

    @property
    def pending_target(self) -> str | None:
        """The text a pending :meth:`wait_for` is waiting for, if any."""
        with self._lock:
            return None if self._pending is None else self._pending.target

    def wait_for(
        self,
        target: str,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Block until a record containing ``target`` arrives.

        Only records accepted after this call starts count. Only one wait may
        be pending per consumer.

        Raises:
            AlreadyWaitingError: Another wait is pending on this consumer.
            WaitTimeoutError: No matching record within ``timeout`` seconds.
            WaitCancelledError: ``cancel`` was set before a match arrived.
        """
        if not target:
            raise ValueError("Cannot wait for an empty message")

        pending = _PendingWait(target)
        with self._lock:
            if self._pending is not None:
                raise AlreadyWaitingError(
                    f"Already waiting for {self._pending.target!r}"
                )
            self._pending = pending

        try:
            wait_for_event(pending.done, timeout=timeout, cancel=cancel)
        except CancellationError:
            # A match that raced with the deadline still counts
            if not pending.done.is_set():
                raise
        finally:
            with self._lock:
                if self._pending is pending:
                    self._pending = None


class TypedConsumer:
    """Keep the latest text received on each output channel.

    ``accept`` never blocks for longer than a dict update.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._log_types: dict[LogOrigin, str] = {}

    def accept(self, record: LogRecord) -> None:
        with self._lock:
            self._log_types[record.origin] = record.text

    def log_types(self) -> dict[LogOrigin, str]:
        """Return a copy of the latest text per channel."""
        with self._lock:
            return dict(self._log_types)


class SentinelConsumer:
    """Wrap a consumer and stop forwarding at an agreed-upon "end" message.

    This is a convention between whoever writes the logs and whoever reads
    them: a record whose content equals ``sentinel`` exactly sets :attr:`done`
    instead of being forwarded. Records after the sentinel are forwarded as
    usual. ``accept`` blocks only if the wrapped consumer does.
    """

    def __init__(self, consumer: LogConsumer, sentinel: bytes | str) -> None:
        if isinstance(sentinel, str):
            sentinel = sentinel.encode("utf-8")
        self.consumer = consumer
        self.sentinel = sentinel
        self.done = threading.Event()

    def accept(self, record: LogRecord) -> None:
        if record.content == self.sentinel:
            self.done.set()
            return
        self.consumer.accept(record)

    def wait(
        self, timeout: float | None = None, cancel: threading.Event | None = None
    ) -> None:
        """Block until the sentinel has been seen."""
        wait_for_event(self.done, timeout=timeout, cancel=cancel)


class CallbackConsumer:
    """Pass the text of every record, minus its trailing newline, to each sink.

    Blocks as long as the sinks do.

    Example:
        >>> producer.follow(CallbackConsumer(print, logger.info))
    """

    def __init__(self, *sinks: Callable[[str], Any]) -> None:
        self._sinks = sinks

    def accept(self, record: LogRecord) -> None:
        line = record.text
        if line.endswith("\n"):
            line = line[:-1]
        for sink in self._sinks:
            sink(line)
