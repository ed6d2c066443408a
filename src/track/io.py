"""Plain command output and fatal exits for CLI commands."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import NoReturn

from . import log as track_log


def say(message: str) -> None:
    """Print command output to stdout, unaffected by the log level.

    Example:
        >>> say("linked TRK-1 -> pr 4")
        linked TRK-1 -> pr 4
    """
    print(message)


def say_lines(lines: Iterable[str]) -> None:
    for line in lines:
        say(line)


def die(message: str, code: int = 1) -> NoReturn:
    """Report a fatal command error on stderr and exit with ``code``."""
    track_log.emit(track_log.LogLevel.ERROR, f"error: {message}")
    sys.exit(code)
