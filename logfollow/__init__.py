# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Follow the output of running containers and fan it out to consumers."""

from .consumers import (
    BufferingConsumer,
    CallbackConsumer,
    LogConsumer,
    SentinelConsumer,
    TypedConsumer,
)
from .demux import StreamDemultiplexer, encode_frame
from .exceptions import (
    AlreadyStartedError,
    AlreadyWaitingError,
    CancellationError,
    FatalFollowError,
    LogFollowError,
    ResourceNotFoundError,
    StopTimeoutError,
    TransientStreamError,
    UsageError,
    WaitCancelledError,
    WaitTimeoutError,
)
from .follower import LogFollower
from .producer import LogProducer
from .records import LogOrigin, LogRecord
from .router import LogRouter
from .source import LogSource, LogStream

__version__ = "0.1.0"

__all__ = [
    "AlreadyStartedError",
    "AlreadyWaitingError",
    "BufferingConsumer",
    "CallbackConsumer",
    "CancellationError",
    "FatalFollowError",
    "LogConsumer",
    "LogFollowError",
    "LogFollower",
    "LogOrigin",
    "LogProducer",
    "LogRecord",
    "LogRouter",
    "LogSource",
    "LogStream",
    "ResourceNotFoundError",
    "SentinelConsumer",
    "StopTimeoutError",
    "StreamDemultiplexer",
    "TransientStreamError",
    "TypedConsumer",
    "UsageError",
    "WaitCancelledError",
    "WaitTimeoutError",
    "encode_frame",
]
