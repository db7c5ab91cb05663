# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""High-level entry point: follow the output of one container."""

from typing import Any

from .config import FollowConfig
from .consumers import LogConsumer
from .demux import StreamDemultiplexer
from .producer import LogProducer
from .router import LogRouter
from .source import LogSource


class LogFollower:
    """Register consumers for a log source and start or stop following it.

    Can be used as a context manager, which stops the producer on exit.

    Example:
        >>> consumer = BufferingConsumer()
        >>> with LogFollower.for_container("my-container") as follower:
        ...     follower.follow_output(consumer)
        ...     follower.start_log_producer()
        ...     consumer.wait_for("ready", timeout=10)
    """

    def __init__(self, source: LogSource, config: FollowConfig | None = None) -> None:
        self.source = source
        self.router = LogRouter()
        self.producer = LogProducer(source, router=self.router, config=config)

    @classmethod
    def for_container(
        cls,
        container_id: str,
        client: Any = None,
        config: FollowConfig | None = None,
    ) -> "LogFollower":
        """Follow a Docker container by id or name."""
        from .docker_source import DockerLogSource, get_docker_client

        if client is None and config is not None:
            client = get_docker_client(config.docker_host)
        timestamps = config.timestamps if config is not None else None
        source = DockerLogSource(container_id, client=client, timestamps=timestamps)
        return cls(source, config=config)

    def follow_output(self, consumer: LogConsumer) -> None:
        """Register a consumer for records produced from now on."""
        self.router.register(consumer)

    def start_log_producer(self) -> None:
        """Start following; raises AlreadyStartedError if already following."""
        self.producer.start()

    def stop_log_producer(self, timeout: float | None = None) -> None:
        """Stop following; does nothing if not following."""
        self.producer.stop(timeout=timeout)

    def logs(self) -> bytes:
        """Return the output written so far, without framing or timestamps.

        stdout and stderr are combined in the order the runtime recorded them.
        """
        stream = self.source.open(since=None, follow=False)
        try:
            records = StreamDemultiplexer(
                stream, tty=self.source.tty, timestamps=self.source.timestamps
            )
            return b"".join(record.content for record in records)
        finally:
            stream.close()

    def __enter__(self) -> "LogFollower":
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop_log_producer()
