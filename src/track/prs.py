"""GitHub pull request helpers built on the ``gh`` CLI."""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from . import checks as checks_util
from .exec import (
    CommandError,
    CommandParseError,
    CommandRunner,
    parse_json_model,
    parse_json_model_list,
)
from .models import Check, MergeMethod, PrListItem, PrMergeState

PR_BODY_TEMPLATE = "## Summary\n- Automated by `track dispatch`\n\nCloses {issue_id}\n"
PR_TITLE_TEMPLATE = "{issue_id}: {title}"

_MERGE_METHOD_FLAGS: dict[str, str] = {
    "merge": "--merge",
    "squash": "--squash",
    "rebase": "--rebase",
}
_PR_NUMBER_RE = re.compile(r"([0-9]+)$")


class PullRequestError(RuntimeError):
    """Raised when a pull request cannot be resolved."""


def gh_available() -> bool:
    return shutil.which("gh") is not None


def normalize_pr_ref(value: str) -> str:
    """Extract a pull request number from a number, URL, or ``owner/repo#N``.

    Falls back to the trimmed input when it does not end in digits.

    Example:
        >>> normalize_pr_ref(" https://github.com/a/b/pull/456 ")
        '456'
        >>> normalize_pr_ref("owner/repo#789")
        '789'
        >>> normalize_pr_ref("feature-branch")
        'feature-branch'
    """
    trimmed = value.strip()
    if not trimmed:
        return trimmed
    match = _PR_NUMBER_RE.search(trimmed)
    if match is None:
        return trimmed
    return match.group(1)


def merge_method_flag(method: MergeMethod | str) -> str:
    """Map a merge method to its ``gh pr merge`` flag.

    Example:
        >>> merge_method_flag("squash")
        '--squash'
    """
    try:
        return _MERGE_METHOD_FLAGS[method]
    except KeyError as exc:
        raise ValueError(f"invalid merge method: {method}") from exc


def _repo_args(repo: str | None) -> tuple[str, ...]:
    if repo:
        return ("--repo", repo)
    return ()


def find_open_pr(runner: CommandRunner, worktree: Path, branch: str) -> str | None:
    """Return the number of an open pull request for ``branch`` if any."""
    output = runner.run(
        worktree, "gh", "pr", "list", "--head", branch, "--state", "open", "--json", "number"
    )
    items = parse_json_model_list(output, model_type=PrListItem, context="gh pr list")
    if not items:
        return None
    return str(items[0].number)


def create_pr(
    runner: CommandRunner,
    worktree: Path,
    *,
    branch: str,
    base: str,
    issue_id: str,
    issue_title: str,
) -> str:
    """Create a pull request and return its normalized reference."""
    title = PR_TITLE_TEMPLATE.format(issue_id=issue_id, title=issue_title)
    body = PR_BODY_TEMPLATE.format(issue_id=issue_id)
    output = runner.run(
        worktree,
        "gh",
        "pr",
        "create",
        "--head",
        branch,
        "--base",
        base,
        "--title",
        title,
        "--body",
        body,
    )
    pr_ref = normalize_pr_ref(output)
    if not pr_ref:
        raise PullRequestError("failed to resolve PR number from gh pr create output")
    return pr_ref


def ensure_pr(
    runner: CommandRunner,
    worktree: Path,
    *,
    branch: str,
    base: str,
    issue_id: str,
    issue_title: str,
) -> str:
    """Reuse the open pull request for ``branch`` or create a new one."""
    existing = find_open_pr(runner, worktree, branch)
    if existing is not None:
        return existing
    return create_pr(
        runner,
        worktree,
        branch=branch,
        base=base,
        issue_id=issue_id,
        issue_title=issue_title,
    )


def watch_checks(runner: CommandRunner, worktree: Path, pr_ref: str) -> None:
    """Block until CI checks resolve; raises when they fail."""
    runner.run(worktree, "gh", "pr", "checks", pr_ref, "--watch")


def merge_pr(
    runner: CommandRunner, worktree: Path, pr_ref: str, method: MergeMethod | str
) -> None:
    """Merge a pull request and delete its branch."""
    runner.run(worktree, "gh", "pr", "merge", pr_ref, merge_method_flag(method), "--delete-branch")


def enable_auto_merge(
    runner: CommandRunner,
    cwd: Path,
    pr_ref: str,
    method: MergeMethod | str,
    *,
    repo: str | None = None,
) -> None:
    """Enable auto-merge so GitHub merges once requirements pass."""
    runner.run(
        cwd,
        "gh",
        "pr",
        "merge",
        normalize_pr_ref(pr_ref),
        "--auto",
        merge_method_flag(method),
        *_repo_args(repo),
    )


def fetch_checks(
    runner: CommandRunner, cwd: Path, pr_ref: str, *, repo: str | None = None
) -> list[Check]:
    """Return the CI checks for a pull request.

    ``gh pr checks`` exits non-zero while checks are failing or pending but
    still prints the JSON payload, so output attached to a failure is parsed
    before giving up.
    """
    pr = normalize_pr_ref(pr_ref)
    args = ("pr", "checks", pr, "--json", "name,state,link", *_repo_args(repo))
    try:
        output = runner.run(cwd, "gh", *args, merge_stderr=False)
    except CommandError as exc:
        try:
            return parse_json_model_list(exc.output, model_type=Check, context="gh pr checks")
        except CommandParseError:
            raise exc from None
    return parse_json_model_list(output, model_type=Check, context="gh pr checks")


def fetch_merge_state(
    runner: CommandRunner, cwd: Path, pr_ref: str, *, repo: str | None = None
) -> PrMergeState:
    """Return the merge state for a pull request."""
    pr = normalize_pr_ref(pr_ref)
    output = runner.run(
        cwd,
        "gh",
        "pr",
        "view",
        pr,
        "--json",
        "state,mergedAt",
        *_repo_args(repo),
        merge_stderr=False,
    )
    return parse_json_model(output, model_type=PrMergeState, context="gh pr view")


def fetch_failure_log(
    runner: CommandRunner, cwd: Path, check: Check, *, repo: str | None = None
) -> str:
    """Return the Actions log for a failing check.

    Raises:
        PullRequestError: When the check link is not an Actions run link.
        CommandError: When ``gh run view`` fails.
    """
    parsed = checks_util.parse_run_and_job(check.link)
    if parsed is None:
        raise PullRequestError(f"unsupported check link: {check.link}")
    run_id, job_id = parsed
    args: list[str] = ["run", "view", run_id, "--log"]
    if job_id:
        args.extend(["--job", job_id])
    args.extend(_repo_args(repo))
    return runner.run(cwd, "gh", *args)
