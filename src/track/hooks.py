"""Lifecycle hook firing for issue status changes."""

from __future__ import annotations

import os
import shlex
import subprocess
from pathlib import Path
from typing import Protocol

from . import log as track_log
from .models import RegisteredHook

ISSUE_CREATED = "issue.created"
ISSUE_UPDATED = "issue.updated"
ISSUE_STATUS_CHANGED = "issue.status_changed"
ISSUE_COMPLETED = "issue.completed"
SYNC_COMPLETED = "sync.completed"

VALID_EVENTS = frozenset(
    {ISSUE_CREATED, ISSUE_UPDATED, ISSUE_STATUS_CHANGED, ISSUE_COMPLETED, SYNC_COMPLETED}
)


class HookError(RuntimeError):
    """Raised when a hook cannot be run or exits non-zero."""


class HookRunner(Protocol):
    """Fires named lifecycle events for an issue."""

    def fire(self, event: str, issue_id: str) -> None: ...


class HookSource(Protocol):
    def list_hooks(self, event: str) -> list[RegisteredHook]: ...


def validate_event(event: str) -> None:
    if event not in VALID_EVENTS:
        raise HookError(f"unknown hook event: {event}")


def status_change_events(status: str, *, done_status: str) -> tuple[str, ...]:
    """Return the events fired when an issue moves to ``status``.

    Example:
        >>> status_change_events("done", done_status="done")
        ('issue.updated', 'issue.status_changed', 'issue.completed')
    """
    events = (ISSUE_UPDATED, ISSUE_STATUS_CHANGED)
    if status == done_status:
        return (*events, ISSUE_COMPLETED)
    return events


class ShellHookRunner:
    """Run registered shell hooks with the event context in the environment."""

    def __init__(self, source: HookSource) -> None:
        self._source = source

    def fire(self, event: str, issue_id: str) -> None:
        validate_event(event)
        for hook in self._source.list_hooks(event):
            self._run_one(hook, event, issue_id)

    def _run_one(self, hook: RegisteredHook, event: str, issue_id: str) -> None:
        try:
            argv = shlex.split(hook.run_cmd)
        except ValueError as exc:
            raise HookError(f"parse hook command: {exc}") from exc
        if not argv:
            raise HookError("empty hook command")
        env = dict(os.environ)
        env["TRACK_EVENT"] = event
        env["TRACK_ISSUE_ID"] = issue_id
        cwd = Path(hook.cwd) if hook.cwd else None
        track_log.trace(f"hook({hook.id}) {event}: {hook.run_cmd}")
        try:
            completed = subprocess.run(argv, cwd=cwd, env=env, check=False)
        except OSError as exc:
            raise HookError(f"hook({hook.id}) failed: {exc}") from exc
        if completed.returncode != 0:
            raise HookError(f"hook({hook.id}) failed: exit status {completed.returncode}")
