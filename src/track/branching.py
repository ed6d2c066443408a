"""Helpers for dispatch branch naming and issue id normalization."""

from __future__ import annotations

import re
from pathlib import Path

DISPATCH_BRANCH_PREFIX = "codex/"
WORKTREES_DIRNAME = ".worktree"
ISSUE_ID_PREFIX = "TRK"
FALLBACK_SLUG = "issue"

_DISALLOWED_RUN_RE = re.compile(r"[^a-z0-9._-]+")
_DASH_RUN_RE = re.compile(r"-{2,}")


def issue_slug(issue_id: str) -> str:
    """Return a branch and filesystem safe slug for an issue id.

    Args:
        issue_id: Raw issue identifier.

    Returns:
        Lowercase slug containing only ``[a-z0-9._-]`` with no repeated or
        edge dashes, or ``"issue"`` when nothing usable remains.

    Example:
        >>> issue_slug("TRK-12")
        'trk-12'
        >>> issue_slug("  Fix: the  thing!! ")
        'fix-the-thing'
        >>> issue_slug("???")
        'issue'
    """
    slug = _DISALLOWED_RUN_RE.sub("-", issue_id.strip().lower())
    slug = _DASH_RUN_RE.sub("-", slug)
    slug = slug.strip("-")
    return slug or FALLBACK_SLUG


def dispatch_branch(issue_id: str) -> str:
    """Return the dispatch branch name for an issue id.

    Example:
        >>> dispatch_branch("TRK-1")
        'codex/trk-1'
    """
    return f"{DISPATCH_BRANCH_PREFIX}{issue_slug(issue_id)}"


def worktrees_root(repo_root: Path) -> Path:
    """Return the directory that holds dispatch worktrees."""
    return repo_root / WORKTREES_DIRNAME


def worktree_path(repo_root: Path, issue_id: str) -> Path:
    """Return the worktree path for an issue under the repository root."""
    return worktrees_root(repo_root) / issue_slug(issue_id)


def normalize_issue_id(value: str) -> str:
    """Normalize a CLI issue id argument.

    Example:
        >>> normalize_issue_id(" 12 ")
        'TRK-12'
        >>> normalize_issue_id("TRK-7")
        'TRK-7'
    """
    issue_id = value.strip()
    if issue_id.isdigit() and issue_id.isascii():
        return f"{ISSUE_ID_PREFIX}-{issue_id}"
    return issue_id
