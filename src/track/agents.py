"""Implementation runner resolution and invocation."""

from __future__ import annotations

from pathlib import Path
from typing import IO

from .exec import CommandRunner

RUNNER_EXECUTABLE_PREFIX = "exec_"
SANDBOX_FLAGS = ("--sandbox", "danger-full-access")


def runner_executable_name(runner: str) -> str:
    """Return the executable name for a runner.

    Example:
        >>> runner_executable_name("codex")
        'exec_codex'
    """
    return f"{RUNNER_EXECUTABLE_PREFIX}{runner}"


def resolve_runner_command(worktree: Path, runner: str) -> str:
    """Prefer a runner script inside the worktree, else rely on ``PATH``."""
    name = runner_executable_name(runner)
    local = worktree / name
    if local.exists():
        return str(local)
    return name


def runner_args(mode: str, issue_id: str) -> tuple[str, ...]:
    return (*SANDBOX_FLAGS, mode, issue_id)


def run_implementation(
    runner: CommandRunner,
    worktree: Path,
    *,
    agent: str,
    mode: str,
    issue_id: str,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
    stderr: IO[str] | None = None,
) -> None:
    """Run the implementation agent interactively inside the worktree."""
    command = resolve_runner_command(worktree, agent)
    runner.run_interactive(
        worktree,
        command,
        *runner_args(mode, issue_id),
        stdin=stdin,
        stdout=stdout,
        stderr=stderr,
    )
