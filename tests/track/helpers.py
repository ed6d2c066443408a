# ruff: noqa: E402

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from track.exec import CommandError
from track.hooks import HookError
from track.models import Issue, PullRequestLink, RegisteredHook
from track.store import BUILTIN_STATUSES, IssueNotFoundError, StatusExistsError


@dataclass
class ExpectedCommand:
    """One scripted call for :class:`ScriptedRunner`."""

    program: str
    args: tuple[str, ...]
    cwd: Path
    interactive: bool = False
    merge_stderr: bool = True
    output: str = ""
    error: str | None = None
    after: Callable[[], None] | None = None


def cmd(cwd: Path, program: str, *args: str, **kwargs: object) -> ExpectedCommand:
    return ExpectedCommand(program=program, args=args, cwd=cwd, **kwargs)


def interactive(cwd: Path, program: str, *args: str, **kwargs: object) -> ExpectedCommand:
    return ExpectedCommand(program=program, args=args, cwd=cwd, interactive=True, **kwargs)


class ScriptedRunner:
    """Command runner double that asserts calls in strict order."""

    def __init__(self, expected: list[ExpectedCommand]) -> None:
        self.expected = list(expected)
        self.calls: list[tuple[bool, Path, str, tuple[str, ...]]] = []

    def _next(
        self,
        interactive_call: bool,
        cwd: Path,
        program: str,
        args: tuple[str, ...],
        merge_stderr: bool = True,
    ):
        self.calls.append((interactive_call, cwd, program, args))
        assert self.expected, f"unexpected command: {program} {' '.join(args)}"
        step = self.expected.pop(0)
        actual = (interactive_call, Path(cwd), program, args, merge_stderr)
        wanted = (step.interactive, Path(step.cwd), step.program, step.args, step.merge_stderr)
        assert actual == wanted, f"expected {wanted}, got {actual}"
        if step.after is not None:
            step.after()
        if step.error is not None:
            raise CommandError(
                argv=(program, *args),
                detail=step.error,
                output=step.output,
                returncode=1,
            )
        return step.output

    def run(self, cwd: Path, program: str, *args: str, merge_stderr: bool = True) -> str:
        return self._next(False, cwd, program, args, merge_stderr)

    def run_interactive(
        self,
        cwd: Path,
        program: str,
        *args: str,
        stdin: IO[str] | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ) -> None:
        del stdin, stdout, stderr
        self._next(True, cwd, program, args)

    def assert_done(self) -> None:
        remaining = [f"{c.program} {' '.join(c.args)}" for c in self.expected]
        assert not remaining, f"commands not issued: {remaining}"

    def programs_and_first_args(self) -> list[tuple[str, str]]:
        return [(program, args[0] if args else "") for _, _, program, args in self.calls]


@dataclass
class FakeIssueStore:
    """In-memory issue store."""

    issues: dict[str, Issue] = field(default_factory=dict)
    statuses: set[str] = field(default_factory=lambda: set(BUILTIN_STATUSES))
    links: dict[str, PullRequestLink] = field(default_factory=dict)
    hooks: list[RegisteredHook] = field(default_factory=list)
    status_history: list[tuple[str, str]] = field(default_factory=list)
    update_error: Exception | None = None

    def add_issue(self, issue_id: str, title: str = "Fix things", status: str = "ready") -> Issue:
        issue = Issue(id=issue_id, title=title, status=status)
        self.issues[issue_id] = issue
        return issue

    def get_issue(self, issue_id: str) -> Issue:
        try:
            return self.issues[issue_id]
        except KeyError:
            raise IssueNotFoundError(f"issue not found: {issue_id}") from None

    def update_status(self, issue_id: str, status: str) -> Issue:
        if self.update_error is not None:
            raise self.update_error
        issue = self.get_issue(issue_id).model_copy(update={"status": status})
        self.issues[issue_id] = issue
        self.status_history.append((issue_id, status))
        return issue

    def add_status(self, name: str) -> None:
        if name in self.statuses:
            raise StatusExistsError(f"status already exists: {name}")
        self.statuses.add(name)

    def list_links(self, repo: str | None = None) -> list[PullRequestLink]:
        links = sorted(self.links.values(), key=lambda link: link.issue_id)
        if not repo:
            return links
        return [link for link in links if not link.repo or link.repo == repo]

    def get_link(self, issue_id: str) -> PullRequestLink:
        try:
            return self.links[issue_id]
        except KeyError:
            raise IssueNotFoundError(f"github link not found: {issue_id}") from None

    def upsert_link(self, issue_id: str, pr_ref: str, repo: str | None = None) -> None:
        self.links[issue_id] = PullRequestLink(issue_id=issue_id, pr_ref=pr_ref, repo=repo or "")

    def list_hooks(self, event: str) -> list[RegisteredHook]:
        return [hook for hook in self.hooks if hook.event == event]


@dataclass
class RecordingHooks:
    """Hook runner that records fired events and can fail on demand."""

    fired: list[tuple[str, str]] = field(default_factory=list)
    fail_on: str | None = None

    def fire(self, event: str, issue_id: str) -> None:
        self.fired.append((event, issue_id))
        if self.fail_on == event:
            raise HookError(f"hook(1) failed: {event}")
