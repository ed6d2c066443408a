"""Poll linked pull requests for CI failures and merges."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from pathlib import Path

from . import checks as checks_util
from . import log as track_log
from . import prs
from .exec import CommandError, CommandParseError, CommandRunner
from .hooks import HookError, HookRunner, status_change_events
from .models import Check, PullRequestLink
from .store import STATUS_DONE, IssueStore, StoreError

POLL_ERRORS = (CommandError, CommandParseError, HookError, StoreError, prs.PullRequestError)


def repo_for_link(link: PullRequestLink, repo_override: str | None) -> str:
    """Return the repository used for ``gh`` calls about ``link``."""
    if repo_override:
        return repo_override
    return link.repo


class PrMonitor:
    """Watch issue-linked pull requests and feed results back to the store.

    The failure dedupe set lives on the instance, so a restarted monitor
    reports a still-failing check once more.
    """

    def __init__(
        self,
        *,
        store: IssueStore,
        hooks: HookRunner,
        runner: CommandRunner,
        cwd: Path,
        repo: str | None = None,
        seen_failures: set[str] | None = None,
    ) -> None:
        self.store = store
        self.hooks = hooks
        self.runner = runner
        self.cwd = cwd
        self.repo = repo or None
        self.seen_failures: set[str] = seen_failures if seen_failures is not None else set()

    def poll_once(self) -> None:
        """Inspect every linked pull request once.

        Check-fetch and log-fetch problems are logged per link. Merge-status,
        store, and hook errors propagate and end the pass early.
        """
        for link in self.store.list_links(self.repo):
            self._report_checks(link)
            self._sync_merge_state(link)

    def run(self, interval: float, stop_event: threading.Event) -> None:
        """Poll now, then every ``interval`` seconds until ``stop_event`` is set.

        Errors from the first poll propagate; later ones are logged and the
        loop waits for the next tick.
        """
        self.poll_once()
        while not stop_event.wait(interval):
            try:
                self.poll_once()
            except POLL_ERRORS as exc:
                track_log.error(f"watch error: {exc}")

    def _report_checks(self, link: PullRequestLink) -> None:
        repo = repo_for_link(link, self.repo)
        try:
            checks = prs.fetch_checks(self.runner, self.cwd, link.pr_ref, repo=repo or None)
        except (CommandError, CommandParseError) as exc:
            track_log.warning(f"checks error for {link.issue_id} (pr {link.pr_ref}): {exc}")
            return
        if not checks:
            track_log.info(f"no checks found for {link.issue_id} (pr {link.pr_ref})")
            return
        for check in self._new_failures(link, checks):
            track_log.error(f"failure: {check.name} ({check.link})")
            self._report_failure_log(check, repo)

    def _new_failures(self, link: PullRequestLink, checks: Iterable[Check]) -> list[Check]:
        fresh: list[Check] = []
        for check in checks:
            if not checks_util.is_failure_state(check.state):
                continue
            key = checks_util.failure_key(link.issue_id, check)
            if key in self.seen_failures:
                continue
            self.seen_failures.add(key)
            fresh.append(check)
        return fresh

    def _report_failure_log(self, check: Check, repo: str) -> None:
        try:
            log_text = prs.fetch_failure_log(self.runner, self.cwd, check, repo=repo or None)
        except (CommandError, prs.PullRequestError) as exc:
            track_log.warning(f"log fetch error: {exc}")
            return
        tail = checks_util.tail_lines(log_text, checks_util.FAILURE_LOG_TAIL_LINES)
        track_log.block(f"log: {check.name}", tail)

    def _sync_merge_state(self, link: PullRequestLink) -> None:
        repo = repo_for_link(link, self.repo)
        state = prs.fetch_merge_state(self.runner, self.cwd, link.pr_ref, repo=repo or None)
        if not state.merged:
            return
        updated = self.store.update_status(link.issue_id, STATUS_DONE)
        for event in status_change_events(STATUS_DONE, done_status=STATUS_DONE):
            self.hooks.fire(event, updated.id)
        track_log.success(f"updated {link.issue_id} -> done (pr {link.pr_ref})")


def check_status(
    runner: CommandRunner, cwd: Path, link: PullRequestLink, *, repo: str | None = None
) -> list[str]:
    """Render the check table shown by ``track gh status``."""
    checks = prs.fetch_checks(runner, cwd, link.pr_ref, repo=repo_for_link(link, repo) or None)
    lines = [f"issue: {link.issue_id}", f"pr: {link.pr_ref}", f"repo: {link.repo}"]
    if not checks:
        lines.append("no checks found")
        lines.append("overall: pending")
        return lines
    for check in sorted(checks, key=lambda item: item.name):
        lines.append(checks_util.format_check_row(check))
    lines.append(f"overall: {checks_util.summarize_checks(checks)}")
    return lines
