#!/usr/bin/env python

# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import threading
from enum import Enum
from logging import getLogger
from typing import Annotated, NoReturn

import typer

from .config import FollowConfig, get_config
from .consumers import SentinelConsumer
from .exceptions import (
    ConfigError,
    FatalFollowError,
    LogFollowError,
    ResourceNotFoundError,
    TransientStreamError,
    UserError,
)
from .follower import LogFollower
from .logs import set_logger
from .records import LogOrigin, LogRecord, timestamp_ns

logger = getLogger("logfollow")

app = typer.Typer(
    # Make -h an alias for --help
    context_settings={"help_option_names": ["-h", "--help"]},
    name="logfollow",
    pretty_exceptions_show_locals=False,
    no_args_is_help=True,
)


class LogLevel(str, Enum):
    """Available log levels for the logfollow CLI."""

    # Must be an enum to represent a choice in Typer
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"


class ConsolePrinter:
    """Write stdout records to stdout and stderr records to stderr.

    ``accept`` blocks while the terminal does.
    """

    def accept(self, record: LogRecord) -> None:
        typer.echo(record.text, nl=False, err=record.origin == LogOrigin.stderr)


def version_callback(value: bool | None) -> None:
    """Typer callback for version option."""
    if value:
        from logfollow import __version__

        typer.echo(__version__)
        raise typer.Exit()


def _validate_since(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        timestamp_ns(value)
    except ValueError as ex:
        raise typer.BadParameter(
            f"Expected an RFC3339 UTC timestamp like 2024-05-01T12:00:00Z ({ex})"
        ) from ex
    return value


@app.callback()
def main_callback(
    loglevel: Annotated[
        LogLevel,
        typer.Option(
            help="Set the logging level.",
            case_sensitive=False,
            show_default=True,
            metavar="LEVEL",
        ),
    ] = LogLevel.info,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Print logfollow version and exit.",
        ),
    ] = None,
) -> None:
    """logfollow: follow the stdout and stderr of running containers."""
    set_logger(loglevel, rich_format=True)

    try:
        get_config()
    except ConfigError as err:
        raise UserError(
            "Error while parsing logfollow configuration. "
            f"Please check your LOGFOLLOW_* environment variables.\n{err}"
        ) from None


def _make_follower(container: str, config: FollowConfig) -> LogFollower:
    try:
        return LogFollower.for_container(container, config=config)
    except ResourceNotFoundError as ex:
        raise UserError(f"Container {container} not found.") from ex
    except TransientStreamError as ex:
        raise UserError(f"Cannot reach the Docker daemon: {ex}") from ex


@app.command("follow")
def follow(
    container: Annotated[
        str, typer.Argument(help="Id or name of a running container.")
    ],
    since: Annotated[
        str | None,
        typer.Option(
            help="Only show output written after this RFC3339 UTC timestamp.",
            callback=_validate_since,
        ),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option(help="Stop following after this many seconds."),
    ] = None,
    until: Annotated[
        str | None,
        typer.Option(
            help="Stop following once a line equal to this text has been printed.",
        ),
    ] = None,
) -> None:
    """Print the output of a container as it is written, until it exits."""
    config = get_config()
    if since is not None:
        config = config.model_copy(update={"since": since})

    follower = _make_follower(container, config)
    printer = ConsolePrinter()
    if until is not None:
        # Terminals end lines with CRLF
        line_end = "\r\n" if follower.source.tty else "\n"
        sentinel = SentinelConsumer(printer, f"{until}{line_end}")
        follower.follow_output(sentinel)
        done = sentinel.done
    else:
        follower.follow_output(printer)
        done = threading.Event()

    follower.start_log_producer()
    try:
        finished = _wait_until_finished(follower, done, timeout)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")
        finished = True
    finally:
        try:
            follower.stop_log_producer()
        except FatalFollowError as ex:
            raise UserError(f"Lost the log stream of {container}: {ex}") from ex

    if not finished:
        logger.info(f"Stopped following {container} after {timeout} seconds")


def _wait_until_finished(
    follower: LogFollower, done: threading.Event, timeout: float | None
) -> bool:
    # Poll so that both Ctrl-C and the sentinel are noticed promptly
    poll_interval = 0.1
    waited = 0.0
    while timeout is None or waited < timeout:
        if done.is_set() or follower.producer.wait(poll_interval):
            return True
        waited += poll_interval
    return False


@app.command("logs")
def logs(
    container: Annotated[str, typer.Argument(help="Id or name of a container.")],
) -> None:
    """Print the combined output of a container so far, without stream headers."""
    follower = _make_follower(container, get_config())
    try:
        content = follower.logs()
    except LogFollowError as ex:
        raise UserError(f"Cannot read logs of {container}: {ex}") from ex
    typer.echo(content, nl=False)


def entrypoint() -> NoReturn:
    """Entrypoint for the logfollow CLI."""
    try:
        result = app()
    except UserError as e:
        logger.error(str(e), exc_info=False)
        result = 1
    except Exception:
        logger.critical("Uncaught error", exc_info=True)
        result = 2

    if result > 0:
        logger.critical("Aborting")

    raise SystemExit(result)


if __name__ == "__main__":
    entrypoint()
