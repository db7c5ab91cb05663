# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Exceptions raised by logfollow."""


class LogFollowError(Exception):
    """Base class for all logfollow errors."""

    pass


class UsageError(LogFollowError):
    """Raised when an operation is called in a state that does not allow it."""

    pass


class AlreadyStartedError(UsageError):
    """Raised when a log producer is started twice."""

    pass


class AlreadyWaitingError(UsageError):
    """Raised when a consumer already has a pending wait."""

    pass


class TransientStreamError(LogFollowError):
    """Raised when the log stream is interrupted while the process is still alive.

    Handled inside the log producer by reconnecting.
    """

    pass


class FatalFollowError(LogFollowError):
    """Raised when following cannot continue (e.g. reconnects are exhausted)."""

    pass


class ResourceNotFoundError(FatalFollowError):
    """Raised when the followed resource does not exist (anymore)."""

    pass


class CancellationError(LogFollowError):
    """Raised when a blocking operation is cancelled or runs past its deadline."""

    pass


class WaitTimeoutError(CancellationError):
    """Raised when a wait did not complete before its timeout."""

    pass


class WaitCancelledError(CancellationError):
    """Raised when a wait was cancelled through its cancel event."""

    pass


class StopTimeoutError(CancellationError):
    """Raised when a follow thread does not exit within the stop timeout."""

    pass


class ConfigError(LogFollowError):
    """Raised when the configuration is invalid."""

    pass


class UserError(LogFollowError):
    """Raised for errors the CLI reports without a traceback."""

    pass
