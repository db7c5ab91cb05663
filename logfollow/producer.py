# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Follow a log source on a background thread and feed a log router."""

import logging
import threading

from .config import FollowConfig, get_config
from .consumers import LogConsumer
from .demux import StreamDemultiplexer
from .exceptions import (
    AlreadyStartedError,
    FatalFollowError,
    StopTimeoutError,
    TransientStreamError,
)
from .records import LogRecord, format_timestamp, timestamp_ns
from .router import LogRouter
from .source import LogSource, LogStream

logger = logging.getLogger("logfollow")


class _FollowThread(threading.Thread):
    """Read records from a source until it exits, reconnecting on transient errors.

    One instance per producer run; threads cannot be restarted.
    """

    daemon = True

    def __init__(
        self, source: LogSource, router: LogRouter, config: FollowConfig
    ) -> None:
        super().__init__(name=f"logfollow[{source.name}]")
        self._source = source
        self._router = router
        self._config = config
        self._stop_event = threading.Event()
        self._stream_lock = threading.Lock()
        self._stream: LogStream | None = None
        self._failures = 0
        self._last_timestamp: str | None = None
        # After a reconnect, records at or before this time were already delivered
        self._skip_until_ns: int | None = None
        self.error: FatalFollowError | None = None

    def stop(self, timeout: float) -> None:
        """Signal the thread to stop, interrupt a pending read and wait for it."""
        self._stop_event.set()
        with self._stream_lock:
            stream = self._stream
        if stream is not None:
            stream.close()
        self.join(timeout)

    def run(self) -> None:
        try:
            self._follow()
        except FatalFollowError as exc:
            logger.error(f"Stopped following logs of {self._source.name}: {exc}")
            self.error = exc
        except Exception as exc:
            logger.error(
                f"Unexpected error while following logs of {self._source.name}",
                exc_info=True,
            )
            error = FatalFollowError(f"Unexpected error: {exc}")
            error.__cause__ = exc
            self.error = error

    def _follow(self) -> None:
        since = self._config.since
        while not self._stop_event.is_set():
            try:
                self._follow_once(since)
                return
            except TransientStreamError as exc:
                if self._stop_event.is_set():
                    return
                self._failures += 1
                if self._failures > self._config.max_reconnect_attempts:
                    raise FatalFollowError(
                        f"Giving up after {self._failures - 1} failed reconnect(s): {exc}"
                    ) from exc
                since = self._resume_point(since)
                delay = self._config.reconnect_delay(self._failures)
                logger.warning(
                    f"Log stream of {self._source.name} interrupted ({exc}), "
                    f"reconnecting in {delay:.2f}s"
                )
                if self._stop_event.wait(delay):
                    return

    def _resume_point(self, since: str | None) -> str | None:
        if self._last_timestamp is not None:
            self._skip_until_ns = timestamp_ns(self._last_timestamp)
            return self._last_timestamp
        if self._source.timestamps:
            # Nothing delivered yet, so replaying from the same point is safe
            return since
        return format_timestamp()

    def _follow_once(self, since: str | None) -> None:
        stream = self._source.open(since=since, follow=True)
        with self._stream_lock:
            if self._stop_event.is_set():
                stream.close()
                return
            self._stream = stream

        try:
            records = StreamDemultiplexer(
                stream, tty=self._source.tty, timestamps=self._source.timestamps
            )
            for record in records:
                if self._stop_event.is_set():
                    return
                if self._already_delivered(record):
                    continue
                self._router.dispatch(record)
                self._failures = 0
        finally:
            with self._stream_lock:
                self._stream = None
            stream.close()

        if self._stop_event.is_set():
            return
        if self._source.is_running():
            raise TransientStreamError(
                "Log stream closed while the source is still running"
            )
        logger.debug(f"{self._source.name} exited, log stream finished")

    def _already_delivered(self, record: LogRecord) -> bool:
        if record.timestamp is None:
            return False
        if self._skip_until_ns is not None:
            if timestamp_ns(record.timestamp) <= self._skip_until_ns:
                return True
            self._skip_until_ns = None
        self._last_timestamp = record.timestamp
        return False


class LogProducer:
    """Follow the output of one log source and push every record to a router.

    The producer can be started and stopped repeatedly. Each start opens the
    source from ``config.since``, so with the default configuration a restart
    replays the source's full history.

    Example:
        >>> producer = LogProducer(source)
        >>> producer.follow(consumer)
        >>> producer.start()
        >>> ...
        >>> producer.stop()
    """

    def __init__(
        self,
        source: LogSource,
        router: LogRouter | None = None,
        config: FollowConfig | None = None,
    ) -> None:
        self.source = source
        self.router = router if router is not None else LogRouter()
        self._config = config
        self._lock = threading.Lock()
        self._thread: _FollowThread | None = None
        self._last_error: FatalFollowError | None = None

    @property
    def config(self) -> FollowConfig:
        """Configuration used by the next start (global configuration if none was given)."""
        if self._config is not None:
            return self._config
        return get_config()

    @property
    def is_running(self) -> bool:
        """Whether a follow thread is currently alive."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def last_error(self) -> FatalFollowError | None:
        """The error that ended the most recent run, if any."""
        thread = self._thread
        if thread is not None and thread.error is not None:
            return thread.error
        return self._last_error

    def follow(self, consumer: LogConsumer) -> None:
        """Register a consumer with this producer's router."""
        self.router.register(consumer)

    def start(self) -> None:
        """Start following the source on a background thread.

        Raises:
            AlreadyStartedError: The producer is already running.
        """
        with self._lock:
            if self.is_running:
                raise AlreadyStartedError(
                    f"Log producer for {self.source.name} is already started"
                )
            if self._thread is not None and self._thread.error is not None:
                self._last_error = self._thread.error

            thread = _FollowThread(self.source, self.router, self.config)
            thread.start()
            self._thread = thread
        logger.debug(f"Started following logs of {self.source.name}")

    def stop(self, timeout: float | None = None) -> None:
        """Stop following and wait for the background thread to exit.

        Does nothing if the producer is not running.

        Raises:
            StopTimeoutError: The thread did not exit within ``timeout`` seconds
                (default: ``config.stop_timeout``).
            FatalFollowError: The run had already ended on an unrecoverable error.
        """
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            if timeout is None:
                timeout = self.config.stop_timeout

            thread.stop(timeout)
            if thread.is_alive():
                raise StopTimeoutError(
                    f"Log producer for {self.source.name} did not stop within {timeout}s"
                )

            self._thread = None
            logger.debug(f"Stopped following logs of {self.source.name}")
            if thread.error is not None:
                self._last_error = thread.error
                raise thread.error

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the current run to end on its own (e.g. the source exited).

        Returns True if no run is active anymore.
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()
