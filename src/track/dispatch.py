"""Dispatch pipeline: worktree, implementation, PR, CI, and merge for one issue.

The pipeline is an ordered list of named steps. Each step either completes,
stops the run early with a successful outcome, or raises; the first error
aborts the run with the step index and name attached. Nothing is rolled back,
so branches, worktrees, commits and pull requests left by a failed run are
picked up again by the idempotent checks of the next run.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO

from . import agents, git, prs, worktrees
from . import log as track_log
from .exec import CommandRunner
from .hooks import HookRunner, status_change_events
from .models import DispatchOptions, Issue
from .store import STATUS_DONE, STATUS_IN_PROGRESS, IssueStore, StatusExistsError

FINISHED_STATUS = "finished"


class DispatchOutcome(str, Enum):
    NO_CHANGES = "no-changes"
    FINISHED = "finished"
    DONE = "done"


class DispatchStepError(RuntimeError):
    """Raised when a dispatch step fails."""

    def __init__(self, index: int, name: str, cause: BaseException) -> None:
        super().__init__(f"step {index} ({name}) failed: {cause}")
        self.index = index
        self.name = name
        self.cause = cause


@dataclass(frozen=True)
class DispatchStreams:
    """Streams handed to the interactive implementation runner."""

    stdin: IO[str] | None = None
    stdout: IO[str] | None = None
    stderr: IO[str] | None = None


@dataclass
class DispatchRun:
    """Mutable state for one dispatch invocation."""

    issue_id: str
    cwd: Path
    issue: Issue | None = None
    repo_root: Path | None = None
    worktree_dir: Path | None = None
    branch: str = ""
    pr_ref: str = ""
    has_uncommitted_changes: bool = False
    has_unpushed_commits: bool = False
    step_index: int = 0

    def require_worktree(self) -> Path:
        if self.worktree_dir is None:
            raise RuntimeError("worktree has not been prepared")
        return self.worktree_dir


StepFn = Callable[[], DispatchOutcome | None]


@dataclass(frozen=True)
class DispatchStep:
    name: str
    run: StepFn


@dataclass
class StepRunner:
    """Run named steps in order, numbering them for progress output."""

    run_state: DispatchRun

    def run_steps(self, steps: list[DispatchStep]) -> DispatchOutcome | None:
        for step in steps:
            self.run_state.step_index += 1
            index = self.run_state.step_index
            track_log.step(index, step.name)
            try:
                outcome = step.run()
            except Exception as exc:
                track_log.step_failed(index, step.name, exc)
                raise DispatchStepError(index, step.name, exc) from exc
            if outcome is not None:
                return outcome
        return None


def ensure_finished_status(store: IssueStore) -> None:
    """Register the ``finished`` status, tolerating an existing one."""
    try:
        store.add_status(FINISHED_STATUS)
    except StatusExistsError:
        return


def update_issue_status(
    store: IssueStore, hooks: HookRunner, issue_id: str, status: str
) -> Issue:
    """Change an issue status and fire the matching lifecycle hooks."""
    updated = store.update_status(issue_id, status)
    for event in status_change_events(status, done_status=STATUS_DONE):
        hooks.fire(event, updated.id)
    return updated


class Dispatcher:
    """Drive one issue from worktree to merged pull request."""

    def __init__(
        self,
        *,
        store: IssueStore,
        hooks: HookRunner,
        runner: CommandRunner,
        options: DispatchOptions,
        streams: DispatchStreams | None = None,
    ) -> None:
        self.store = store
        self.hooks = hooks
        self.runner = runner
        self.options = options
        self.streams = streams or DispatchStreams()

    def run(self, issue_id: str, cwd: Path) -> DispatchOutcome:
        """Run the dispatch pipeline for ``issue_id`` from ``cwd``.

        Returns:
            ``NO_CHANGES`` when the runner produced nothing to publish,
            ``FINISHED`` when merging was skipped, otherwise ``DONE``.

        Raises:
            DispatchStepError: When any step fails.
        """
        state = DispatchRun(issue_id=issue_id, cwd=cwd)
        outcome = StepRunner(state).run_steps(self.steps(state))
        if outcome is not None:
            return outcome
        if self.options.no_merge:
            track_log.info("dispatch complete with --no-merge (issue status: finished)")
            return DispatchOutcome.FINISHED
        track_log.success(f"dispatch complete: {issue_id} -> done")
        return DispatchOutcome.DONE

    def steps(self, state: DispatchRun) -> list[DispatchStep]:
        steps = [
            DispatchStep("prepare issue status", lambda: self._prepare_issue(state)),
            DispatchStep("prepare worktree", lambda: self._prepare_worktree(state)),
            DispatchStep("run implementation runner", lambda: self._run_runner(state)),
            DispatchStep("detect changes", lambda: self._detect_changes(state)),
            DispatchStep("commit and push", lambda: self._commit_and_push(state)),
            DispatchStep("create or reuse PR", lambda: self._ensure_pr(state)),
            DispatchStep("mark issue finished", lambda: self._set_status(state, FINISHED_STATUS)),
            DispatchStep("watch CI checks", lambda: self._watch_checks(state)),
        ]
        if not self.options.no_merge:
            steps.append(DispatchStep("merge PR", lambda: self._merge(state)))
            steps.append(DispatchStep("mark issue done", lambda: self._set_status(state, STATUS_DONE)))
        return steps

    def _prepare_issue(self, state: DispatchRun) -> None:
        state.issue = self.store.get_issue(state.issue_id)
        update_issue_status(self.store, self.hooks, state.issue_id, STATUS_IN_PROGRESS)
        ensure_finished_status(self.store)

    def _prepare_worktree(self, state: DispatchRun) -> None:
        state.repo_root = git.repo_root(self.runner, state.cwd)
        prepared = worktrees.ensure_worktree(
            self.runner, state.repo_root, state.issue_id, base=self.options.base
        )
        state.worktree_dir = prepared.path
        state.branch = prepared.branch

    def _run_runner(self, state: DispatchRun) -> None:
        agents.run_implementation(
            self.runner,
            state.require_worktree(),
            agent=self.options.runner,
            mode=self.options.mode,
            issue_id=state.issue_id,
            stdin=self.streams.stdin,
            stdout=self.streams.stdout,
            stderr=self.streams.stderr,
        )

    def _detect_changes(self, state: DispatchRun) -> DispatchOutcome | None:
        worktree = state.require_worktree()
        state.has_uncommitted_changes = git.has_uncommitted_changes(self.runner, worktree)
        state.has_unpushed_commits = git.ahead_count(self.runner, worktree, self.options.base) > 0
        if state.has_uncommitted_changes or state.has_unpushed_commits:
            return None
        track_log.info("no changes detected; skipping commit/push/pr")
        return DispatchOutcome.NO_CHANGES

    def _commit_and_push(self, state: DispatchRun) -> None:
        worktree = state.require_worktree()
        if state.has_uncommitted_changes:
            git.commit_all(self.runner, worktree, state.issue_id)
        git.push_branch(self.runner, worktree, state.branch)

    def _ensure_pr(self, state: DispatchRun) -> None:
        title = state.issue.title if state.issue is not None else ""
        state.pr_ref = prs.ensure_pr(
            self.runner,
            state.require_worktree(),
            branch=state.branch,
            base=self.options.base,
            issue_id=state.issue_id,
            issue_title=title,
        )
        track_log.debug(f"pull request: {state.pr_ref}")

    def _set_status(self, state: DispatchRun, status: str) -> None:
        update_issue_status(self.store, self.hooks, state.issue_id, status)

    def _watch_checks(self, state: DispatchRun) -> None:
        prs.watch_checks(self.runner, state.require_worktree(), state.pr_ref)

    def _merge(self, state: DispatchRun) -> None:
        prs.merge_pr(
            self.runner, state.require_worktree(), state.pr_ref, self.options.merge_method
        )


def run_dispatch(
    issue_id: str,
    *,
    cwd: Path,
    store: IssueStore,
    hooks: HookRunner,
    runner: CommandRunner,
    options: DispatchOptions,
    streams: DispatchStreams | None = None,
) -> DispatchOutcome:
    """Convenience wrapper that builds a :class:`Dispatcher` and runs it."""
    dispatcher = Dispatcher(
        store=store, hooks=hooks, runner=runner, options=options, streams=streams
    )
    return dispatcher.run(issue_id, cwd)
