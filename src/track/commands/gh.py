"""Implementations for the ``track gh`` commands."""

from __future__ import annotations

import threading
from pathlib import Path

from .. import log as track_log
from .. import prs
from ..config import DurationError, parse_duration
from ..exec import CommandError, CommandParseError, SubprocessCommandRunner
from ..hooks import ShellHookRunner
from ..io import die, say, say_lines
from ..monitor import POLL_ERRORS, PrMonitor, check_status, repo_for_link
from ..store import StoreError
from .common import (
    load_config_or_die,
    open_store,
    require_gh,
    require_issue_id,
    resolve_repo,
)


AUTO_MERGE_DEFAULT_METHOD = "squash"


def watch(args: object) -> None:
    """Poll linked pull requests until interrupted.

    ``args.interval`` is seconds; ``None`` uses the configured interval.
    Links are filtered by repository only when ``args.repo`` is given.
    """
    config = load_config_or_die()
    repo = (getattr(args, "repo", None) or "").strip() or None
    interval = getattr(args, "interval", None)
    if interval is None:
        try:
            interval = parse_duration(config.watch_interval)
        except DurationError as exc:
            die(f"watch_interval: {exc}")
    require_gh()
    stop = threading.Event()
    with open_store() as store:
        monitor = PrMonitor(
            store=store,
            hooks=ShellHookRunner(store),
            runner=SubprocessCommandRunner(),
            cwd=Path.cwd(),
            repo=repo,
        )
        track_log.info(f"watching linked PRs every {interval:g}s")
        try:
            monitor.run(interval, stop)
        except KeyboardInterrupt:
            stop.set()
            track_log.info("watch stopped")
        except POLL_ERRORS as exc:
            die(str(exc))


def link(args: object) -> None:
    """Associate an issue with a pull request."""
    issue_id = require_issue_id(getattr(args, "issue_id", "") or "")
    pr_ref = prs.normalize_pr_ref(getattr(args, "pr", "") or "")
    if not pr_ref:
        die("--pr is required")
    repo = (getattr(args, "repo", None) or "").strip()
    with open_store() as store:
        try:
            store.get_issue(issue_id)
            store.upsert_link(issue_id, pr_ref, repo or None)
        except StoreError as exc:
            die(str(exc))
    say(f"linked {issue_id} -> pr {pr_ref}")


def status(args: object) -> None:
    """Print the CI checks of an issue's linked pull request."""
    issue_id = require_issue_id(getattr(args, "issue_id", "") or "")
    config = load_config_or_die()
    require_gh()
    with open_store() as store:
        try:
            linked = store.get_link(issue_id)
        except StoreError as exc:
            die(str(exc))
    try:
        lines = check_status(
            SubprocessCommandRunner(),
            Path.cwd(),
            linked,
            repo=resolve_repo(getattr(args, "repo", None), config),
        )
    except (CommandError, CommandParseError) as exc:
        die(str(exc))
    say_lines(lines)


def auto_merge(args: object) -> None:
    """Enable GitHub auto-merge on an issue's linked pull request."""
    issue_id = require_issue_id(getattr(args, "issue_id", "") or "")
    config = load_config_or_die()
    method = getattr(args, "method", None) or AUTO_MERGE_DEFAULT_METHOD
    require_gh()
    with open_store() as store:
        try:
            linked = store.get_link(issue_id)
        except StoreError as exc:
            die(str(exc))
    repo = repo_for_link(linked, resolve_repo(getattr(args, "repo", None), config))
    try:
        prs.enable_auto_merge(
            SubprocessCommandRunner(), Path.cwd(), linked.pr_ref, method, repo=repo or None
        )
    except (CommandError, ValueError) as exc:
        die(str(exc))
    say(f"auto-merge enabled for {issue_id} (pr {linked.pr_ref}, {method})")
