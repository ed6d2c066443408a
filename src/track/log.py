"""Leveled terminal output for track.

Progress, notices and successes are written to stdout; warnings and errors to
stderr. The threshold comes from ``--log-level`` or ``TRACK_LOG_LEVEL`` and
defaults to ``info``.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from enum import IntEnum

from rich.console import Console
from rich.text import Text


class LogLevel(IntEnum):
    TRACE = 10
    DEBUG = 20
    INFO = 30
    SUCCESS = 35
    WARNING = 40
    ERROR = 50


LOG_LEVEL_NAMES = tuple(level.name.lower() for level in LogLevel)
LOG_LEVEL_ENV = "TRACK_LOG_LEVEL"
NO_COLOR_ENVS = ("NO_COLOR", "TRACK_NO_COLOR")

_STYLES = {
    LogLevel.TRACE: "dim",
    LogLevel.DEBUG: "cyan",
    LogLevel.INFO: "",
    LogLevel.SUCCESS: "green",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "bold red",
}


@dataclass
class _OutputState:
    level: LogLevel | None = None
    no_color: bool = False


_state = _OutputState()


def parse_level(value: str | None) -> LogLevel:
    """Map a level name to :class:`LogLevel`, defaulting to ``INFO``.

    Example:
        >>> parse_level(" Debug ").name
        'DEBUG'
        >>> parse_level("loud").name
        'INFO'
    """
    name = (value or "").strip().upper()
    if name == "WARN":
        name = "WARNING"
    return LogLevel.__members__.get(name, LogLevel.INFO)


def configured_level() -> LogLevel:
    if _state.level is None:
        _state.level = parse_level(os.environ.get(LOG_LEVEL_ENV))
    return _state.level


def set_level(value: str | None) -> None:
    """Set the minimum level that is printed."""
    _state.level = parse_level(value)


def set_no_color(value: bool) -> None:
    """Force colorless output regardless of environment."""
    _state.no_color = value


def _color_disabled() -> bool:
    return _state.no_color or any(os.environ.get(name) for name in NO_COLOR_ENVS)


def emit(level: LogLevel, message: str, *, style: str | None = None) -> None:
    if level < configured_level():
        return
    stream = sys.stderr if level >= LogLevel.WARNING else sys.stdout
    console = Console(file=stream, soft_wrap=True, highlight=False, no_color=_color_disabled())
    console.print(Text(message, style=style if style is not None else _STYLES[level]))


def trace(message: str) -> None:
    emit(LogLevel.TRACE, message)


def debug(message: str) -> None:
    emit(LogLevel.DEBUG, message)


def info(message: str) -> None:
    emit(LogLevel.INFO, message)


def success(message: str) -> None:
    emit(LogLevel.SUCCESS, message)


def warning(message: str) -> None:
    emit(LogLevel.WARNING, message)


def error(message: str) -> None:
    emit(LogLevel.ERROR, message)


def step(index: int, name: str) -> None:
    """Announce a numbered pipeline step."""
    emit(LogLevel.INFO, f"step {index}: {name}", style="bold")


def step_failed(index: int, name: str, exc: BaseException) -> None:
    error(f"failed step {index} ({name}): {exc}")


def block(title: str, body: str) -> None:
    """Print a titled block of captured text, such as a CI log tail."""
    emit(LogLevel.INFO, f"--- {title} ---", style="bold")
    if body:
        emit(LogLevel.INFO, body, style="")
