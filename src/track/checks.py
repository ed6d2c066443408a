"""CI check classification and failure log helpers."""

from __future__ import annotations

import re
from collections.abc import Iterable

from .models import Check, CheckSummary

FAILURE_STATES = frozenset(
    {
        "failure",
        "failed",
        "error",
        "timed_out",
        "cancelled",
        "action_required",
        "startup_failure",
    }
)
PENDING_STATES = frozenset({"pending", "queued", "in_progress", "waiting", "requested"})
FAILURE_LOG_TAIL_LINES = 200

_RUN_LINK_RE = re.compile(r"actions/runs/([0-9]+)(?:/job/([0-9]+))?")


def _normalize_state(state: str) -> str:
    return state.strip().lower()


def is_failure_state(state: str) -> bool:
    """Return ``True`` for check states that represent a failure.

    Example:
        >>> is_failure_state("FAILURE")
        True
        >>> is_failure_state("success")
        False
    """
    return _normalize_state(state) in FAILURE_STATES


def is_pending_state(state: str) -> bool:
    """Return ``True`` for check states that have not resolved yet."""
    return _normalize_state(state) in PENDING_STATES


def summarize_checks(checks: Iterable[Check]) -> CheckSummary:
    """Aggregate individual checks into one overall state.

    Any failure wins over pending, and pending wins over success. No checks
    at all counts as pending.

    Example:
        >>> summarize_checks([Check(name="a", state="success")])
        'success'
        >>> summarize_checks([])
        'pending'
    """
    has_checks = False
    has_pending = False
    for check in checks:
        has_checks = True
        if is_failure_state(check.state):
            return "failure"
        if is_pending_state(check.state):
            has_pending = True
    if not has_checks or has_pending:
        return "pending"
    return "success"


def parse_run_and_job(link: str) -> tuple[str, str] | None:
    """Extract the Actions run id and optional job id from a check link.

    Returns:
        ``(run_id, job_id)`` with ``job_id`` empty when the link has none, or
        ``None`` when the link is not an Actions run link.

    Example:
        >>> parse_run_and_job("https://github.com/a/b/actions/runs/123456/job/9876")
        ('123456', '9876')
        >>> parse_run_and_job("https://ci.example.com/build/1") is None
        True
    """
    match = _RUN_LINK_RE.search(link)
    if match is None:
        return None
    return match.group(1), match.group(2) or ""


def tail_lines(text: str, limit: int) -> str:
    """Return the last ``limit`` lines of ``text`` without a trailing newline.

    Example:
        >>> tail_lines("a\\nb\\nc\\nd\\ne\\n", 2)
        'd\\ne'
    """
    trimmed = text.rstrip("\n")
    if not trimmed:
        return trimmed
    lines = trimmed.split("\n")
    if limit <= 0:
        return ""
    return "\n".join(lines[-limit:])


def failure_key(issue_id: str, check: Check) -> str:
    """Return the dedupe key used to report a failing check only once."""
    return f"{issue_id}::{check.name}::{check.link}"


def format_check_row(check: Check) -> str:
    return f"{check.name}\t{_normalize_state(check.state)}\t{check.link}"
