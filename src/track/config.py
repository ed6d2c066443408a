"""Configuration helpers for track.

This module reads the optional ``config.json`` from the track data directory,
validates it with Pydantic models, and parses CLI duration strings.

Example:
    >>> from track.config import utc_now
    >>> utc_now().endswith("Z")
    True
"""

from __future__ import annotations

import datetime as dt
import json
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from . import paths
from .models import MergeMethod, Runner

DEFAULT_WATCH_INTERVAL = "30s"

_DURATION_TOKEN_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be used."""


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


class DispatchDefaults(BaseModel):
    """Default values for ``track dispatch`` flags."""

    model_config = ConfigDict(extra="allow")

    runner: Runner = "codex"
    base: str = "main"
    merge_method: MergeMethod = "merge"


class TrackConfig(BaseModel):
    """User configuration for track.

    Attributes:
        gh_repo: Default ``owner/name`` for GitHub commands.
        watch_interval: Default poll interval for ``track gh watch``.
        dispatch: Default dispatch flag values.

    Example:
        >>> TrackConfig(gh_repo=" org/repo ").gh_repo
        'org/repo'
    """

    model_config = ConfigDict(extra="allow")

    gh_repo: str = ""
    watch_interval: str = DEFAULT_WATCH_INTERVAL
    dispatch: DispatchDefaults = DispatchDefaults()

    @field_validator("gh_repo", mode="before")
    @classmethod
    def normalize_repo(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value


def utc_now() -> str:
    """Return the current UTC timestamp in RFC 3339 format.

    Example:
        >>> timestamp = utc_now()
        >>> timestamp.endswith("Z")
        True
    """
    now = dt.datetime.now(tz=dt.timezone.utc).replace(microsecond=0)
    return now.isoformat().replace("+00:00", "Z")


def load_config(path: Path | None = None) -> TrackConfig:
    """Load the track configuration file.

    Args:
        path: Explicit config path; defaults to ``config.json`` in the track
            data directory.

    Returns:
        Parsed configuration, or defaults when the file does not exist.

    Raises:
        ConfigError: When the file is not valid JSON or fails validation.
    """
    config_file = path or paths.config_path()
    if not config_file.exists():
        return TrackConfig()
    try:
        payload = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"failed to read {config_file}: {exc}") from exc
    try:
        return TrackConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"invalid config at {config_file}: {exc}") from exc


def parse_duration(value: str) -> float:
    """Parse a Go-style duration string into seconds.

    Args:
        value: Duration such as ``30s``, ``1m30s``, ``500ms`` or ``2h``.

    Returns:
        Duration in seconds.

    Raises:
        DurationError: When the string is empty, malformed, or not positive.

    Example:
        >>> parse_duration("1m30s")
        90.0
        >>> parse_duration("500ms")
        0.5
    """
    raw = value.strip()
    if not raw:
        raise DurationError("invalid duration: empty value")
    position = 0
    total = 0.0
    for match in _DURATION_TOKEN_RE.finditer(raw):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position != len(raw) or position == 0:
        raise DurationError(f"invalid duration: {value!r}")
    if total <= 0:
        raise DurationError(f"non-positive duration: {value!r}")
    return total
