"""Shared wiring for command implementations."""

from __future__ import annotations

from pathlib import Path

from .. import paths, prs
from ..branching import normalize_issue_id
from ..config import ConfigError, TrackConfig, load_config
from ..io import die
from ..store import SqliteIssueStore, StoreError


def require_gh() -> None:
    """Exit early when the GitHub CLI is not installed."""
    if not prs.gh_available():
        die("gh command is required")


def load_config_or_die() -> TrackConfig:
    try:
        return load_config()
    except ConfigError as exc:
        die(str(exc))


def open_store(path: Path | None = None) -> SqliteIssueStore:
    """Open the shared issue database, exiting on failure."""
    try:
        return SqliteIssueStore.open(path or paths.db_path())
    except StoreError as exc:
        die(str(exc))


def require_issue_id(value: str) -> str:
    """Normalize an issue id argument.

    Example:
        >>> require_issue_id(" 12 ")
        'TRK-12'
    """
    issue_id = normalize_issue_id(value)
    if not issue_id:
        die("issue id is required")
    return issue_id


def resolve_repo(override: str | None, config: TrackConfig) -> str | None:
    """Pick the ``--repo`` flag, falling back to the configured default."""
    repo = (override or "").strip() or config.gh_repo
    return repo or None
