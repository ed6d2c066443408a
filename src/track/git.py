"""Git helper functions used by the dispatch pipeline."""

from __future__ import annotations

from pathlib import Path

from .exec import CommandError, CommandParseError, CommandRunner

DEFAULT_REMOTE = "origin"
COMMIT_MESSAGE_TEMPLATE = "chore: apply {issue_id} via track dispatch"


def repo_root(runner: CommandRunner, cwd: Path) -> Path:
    """Return the repository root for a working directory.

    Raises:
        CommandError: When git fails or reports an empty root.
    """
    output = runner.run(cwd, "git", "rev-parse", "--show-toplevel").strip()
    if not output:
        raise CommandError(
            argv=("git", "rev-parse", "--show-toplevel"),
            detail="resolve repository root",
        )
    return Path(output)


def branch_exists(runner: CommandRunner, repo_dir: Path, branch: str) -> bool:
    """Return ``True`` when a local branch ref exists."""
    try:
        runner.run(repo_dir, "git", "show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
    except CommandError:
        return False
    return True


def add_worktree(
    runner: CommandRunner,
    repo_dir: Path,
    path: Path,
    branch: str,
    *,
    create_from: str | None = None,
) -> None:
    """Attach a worktree, creating ``branch`` from ``create_from`` when given."""
    if create_from is None:
        runner.run(repo_dir, "git", "worktree", "add", str(path), branch)
        return
    runner.run(repo_dir, "git", "worktree", "add", "-b", branch, str(path), create_from)


def has_uncommitted_changes(runner: CommandRunner, worktree: Path) -> bool:
    """Return ``True`` when ``git status --porcelain`` reports anything."""
    output = runner.run(worktree, "git", "status", "--porcelain")
    return output.strip() != ""


def ahead_count(runner: CommandRunner, worktree: Path, base: str) -> int:
    """Return the number of commits on ``HEAD`` that are not on ``base``."""
    output = runner.run(worktree, "git", "rev-list", "--count", f"{base}..HEAD")
    try:
        return int(output.strip())
    except ValueError as exc:
        raise CommandParseError(detail=f"parse ahead commit count: {output.strip()!r}") from exc


def commit_all(runner: CommandRunner, worktree: Path, issue_id: str) -> None:
    """Stage everything and commit with the dispatch message."""
    runner.run(worktree, "git", "add", "-A")
    message = COMMIT_MESSAGE_TEMPLATE.format(issue_id=issue_id)
    runner.run(worktree, "git", "commit", "-m", message)


def push_branch(
    runner: CommandRunner, worktree: Path, branch: str, *, remote: str = DEFAULT_REMOTE
) -> None:
    """Push a branch and set its upstream."""
    runner.run(worktree, "git", "push", "-u", remote, branch)
