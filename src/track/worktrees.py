"""Dispatch worktree preparation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from . import branching, git
from . import log as track_log
from .exec import CommandRunner


class WorktreeError(RuntimeError):
    """Raised when a worktree path cannot be used."""


@dataclass(frozen=True)
class WorktreePreparation:
    path: Path
    branch: str
    created: bool


def ensure_worktree(
    runner: CommandRunner, repo_root: Path, issue_id: str, *, base: str
) -> WorktreePreparation:
    """Ensure the dispatch worktree for an issue exists.

    An existing directory at the worktree path is reused untouched. Otherwise
    the worktree is attached to the dispatch branch, creating the branch from
    ``base`` when it does not exist yet.

    Args:
        runner: Command runner used for git calls.
        repo_root: Repository root directory.
        issue_id: Issue identifier the worktree belongs to.
        base: Base branch used when the dispatch branch is new.

    Returns:
        Worktree path, branch, and whether anything was created.

    Raises:
        WorktreeError: When the path exists but is not a directory.
    """
    branch = branching.dispatch_branch(issue_id)
    path = branching.worktree_path(repo_root, issue_id)
    branching.worktrees_root(repo_root).mkdir(parents=True, exist_ok=True)

    if path.exists() or path.is_symlink():
        if not path.is_dir():
            raise WorktreeError(f"worktree path exists and is not a directory: {path}")
        track_log.debug(f"reusing worktree {path}")
        return WorktreePreparation(path=path, branch=branch, created=False)

    if git.branch_exists(runner, repo_root, branch):
        track_log.debug(f"attaching worktree to existing branch {branch}")
        git.add_worktree(runner, repo_root, path, branch)
    else:
        track_log.debug(f"creating branch {branch} from {base}")
        git.add_worktree(runner, repo_root, path, branch, create_from=base)
    return WorktreePreparation(path=path, branch=branch, created=True)
