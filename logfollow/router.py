# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Fan-out of log records to registered consumers."""

import logging
import threading

from .consumers import LogConsumer
from .records import LogRecord

logger = logging.getLogger("logfollow")


class LogRouter:
    """Deliver every dispatched record to all registered consumers.

    Records are handed to each consumer synchronously, in registration order,
    on the thread that calls :meth:`dispatch`. A consumer whose ``accept``
    blocks holds up the whole pipeline; consumers that need to decouple from
    the producer must buffer internally.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._consumers: list[LogConsumer] = []

    def register(self, consumer: LogConsumer) -> None:
        """Add a consumer. It receives records dispatched from now on."""
        if not callable(getattr(consumer, "accept", None)):
            raise TypeError(
                f"Log consumers must have an accept() method, got {consumer!r}"
            )
        with self._lock:
            self._consumers.append(consumer)

    def unregister(self, consumer: LogConsumer) -> bool:
        """Remove a consumer. Returns False if it was not registered."""
        with self._lock:
            try:
                self._consumers.remove(consumer)
            except ValueError:
                return False
        return True

    @property
    def consumers(self) -> tuple[LogConsumer, ...]:
        """Snapshot of the registered consumers."""
        with self._lock:
            return tuple(self._consumers)

    def dispatch(self, record: LogRecord) -> None:
        """Hand ``record`` to every registered consumer."""
        for consumer in self.consumers:
            try:
                consumer.accept(record)
            except Exception:
                # Remaining consumers still get the record
                logger.error(
                    f"Log consumer {consumer!r} failed to accept a record",
                    exc_info=True,
                )
