# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Logging setup for the logfollow package."""

import logging
import sys
from collections.abc import Iterable
from types import ModuleType

import typer
from rich.console import Console
from rich.markup import escape
from rich.traceback import Traceback

PACKAGE_LOGGER = "logfollow"

DEFAULT_CONSOLE = Console(stderr=True)

LEVEL_PREFIX = {
    "DEBUG": " [dim]\\[+][/] ",
    "INFO": " [dim]\\[[/][blue]i[/][dim]][/] ",
    "WARNING": " \\[[yellow]![/]] ",
    "ERROR": " [red]\\[-][/] ",
    "CRITICAL": " [red reverse]\\[x][/] ",
}


class RichLogger(logging.Handler):
    """Render log messages with rich markup, and exceptions as rich tracebacks."""

    def __init__(
        self,
        console: Console,
        level: int | str = logging.NOTSET,
        tracebacks_suppress: Iterable[str | ModuleType] = (),
    ) -> None:
        super().__init__(level=level)
        self._console = console
        self._tracebacks_suppress = tracebacks_suppress

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record."""
        exc_info = record.exc_info
        # The traceback is rendered separately below
        record.exc_info = None
        try:
            self._console.print(self.format(record), markup=True, soft_wrap=True)
            if exc_info and exc_info[0] is not None:
                self._console.print(
                    Traceback.from_exception(
                        *exc_info, suppress=self._tracebacks_suppress
                    )
                )
        finally:
            record.exc_info = exc_info


class _PrefixFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelprefix = LEVEL_PREFIX.get(record.levelname, "")
        record.msg = escape(str(record.msg))
        return super().format(record)


def set_logger(level: str, rich_format: bool | None = None) -> logging.Logger:
    """Send logfollow's log messages to stderr at the given level."""
    level = level.upper()

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel("DEBUG")  # filtering happens in the handler

    if rich_format is None:
        rich_format = DEFAULT_CONSOLE.is_terminal

    handler: logging.Handler
    if rich_format:
        handler = RichLogger(
            console=DEFAULT_CONSOLE, level=level, tracebacks_suppress=[typer]
        )
        formatter = _PrefixFormatter("{levelprefix!s}{message!s}", style="{")
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        formatter = logging.Formatter(
            "{asctime} [{levelname}] {threadName}: {message}", style="{"
        )

    handler.setFormatter(formatter)
    package_logger.handlers = [handler]
    return package_logger


def set_loglevel(level: str) -> None:
    """Update the level of all logfollow log handlers."""
    level = level.upper()
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        handler.setLevel(level)
