"""Command-line entry point for track."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Annotated

import typer

from . import __version__
from . import log as track_log
from .commands.dispatch import dispatch_issue as dispatch_cmd
from .commands.gh import auto_merge as gh_auto_merge_cmd
from .commands.gh import link as gh_link_cmd
from .commands.gh import status as gh_status_cmd
from .commands.gh import watch as gh_watch_cmd
from .config import DurationError, parse_duration
from .models import MERGE_METHOD_VALUES, MODE_VALUES, RUNNER_VALUES

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Dispatch issues to coding agents and watch their pull requests.",
)
gh_app = typer.Typer(no_args_is_help=True, help="GitHub pull request commands.")
app.add_typer(gh_app, name="gh")


def _choice(value: str | None, allowed: tuple[str, ...], flag: str) -> str | None:
    """Normalize an optional choice flag.

    Example:
        >>> _choice(" Squash ", ("merge", "squash"), "--merge-method")
        'squash'
    """
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in allowed:
        raise typer.BadParameter(
            f"expected one of: {', '.join(allowed)}", param_hint=flag
        )
    return normalized


def _interval(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return parse_duration(value)
    except DurationError as exc:
        raise typer.BadParameter(str(exc), param_hint="--interval") from exc


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="log level (trace|debug|info|success|warning|error)",
        ),
    ] = None,
    no_color: Annotated[
        bool, typer.Option("--no-color", help="disable colored output")
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="show the version and exit",
        ),
    ] = False,
) -> None:
    """Configure logging before running a subcommand."""
    if log_level is not None:
        track_log.set_level(_choice(log_level, track_log.LOG_LEVEL_NAMES, "--log-level"))
    if no_color:
        track_log.set_no_color(True)


@app.command("dispatch")
def dispatch_command(
    issue_id: Annotated[str, typer.Argument(help="issue id (e.g. TRK-12 or 12)")],
    runner: Annotated[
        str | None, typer.Option("--runner", help="implementation runner (codex|claude)")
    ] = None,
    mode: Annotated[
        str | None, typer.Option("--mode", help="runner mode (execution|plan)")
    ] = None,
    base: Annotated[
        str | None, typer.Option("--base", help="base branch (default: main)")
    ] = None,
    merge_method: Annotated[
        str | None,
        typer.Option("--merge-method", help="merge method (merge|squash|rebase)"),
    ] = None,
    no_merge: Annotated[
        bool, typer.Option("--no-merge", help="stop after CI passes without merging")
    ] = False,
) -> None:
    """Implement an issue in a worktree and carry it through PR, CI and merge."""
    dispatch_cmd(
        SimpleNamespace(
            issue_id=issue_id,
            runner=_choice(runner, RUNNER_VALUES, "--runner"),
            mode=_choice(mode, MODE_VALUES, "--mode"),
            base=base,
            merge_method=_choice(merge_method, MERGE_METHOD_VALUES, "--merge-method"),
            no_merge=no_merge,
        )
    )


@gh_app.command("watch")
def gh_watch_command(
    repo: Annotated[
        str | None,
        typer.Option("--repo", help="only watch links for this repository (owner/name)"),
    ] = None,
    interval: Annotated[
        str | None, typer.Option("--interval", help="poll interval (e.g. 30s, 1m30s)")
    ] = None,
) -> None:
    """Watch linked PRs for CI failures and merges."""
    gh_watch_cmd(SimpleNamespace(repo=repo, interval=_interval(interval)))


@gh_app.command("link")
def gh_link_command(
    issue_id: Annotated[str, typer.Argument(help="issue id")],
    pr: Annotated[str, typer.Option("--pr", help="pull request number or URL")],
    repo: Annotated[
        str | None, typer.Option("--repo", help="GitHub repository (owner/name)")
    ] = None,
) -> None:
    """Link an issue to a pull request."""
    gh_link_cmd(SimpleNamespace(issue_id=issue_id, pr=pr, repo=repo))


@gh_app.command("status")
def gh_status_command(
    issue_id: Annotated[str, typer.Argument(help="issue id")],
    repo: Annotated[
        str | None, typer.Option("--repo", help="GitHub repository (owner/name)")
    ] = None,
) -> None:
    """Show CI checks for an issue's linked PR."""
    gh_status_cmd(SimpleNamespace(issue_id=issue_id, repo=repo))


@gh_app.command("auto-merge")
def gh_auto_merge_command(
    issue_id: Annotated[str, typer.Argument(help="issue id")],
    method: Annotated[
        str | None,
        typer.Option("--method", help="merge method (merge|squash|rebase, default squash)"),
    ] = None,
    repo: Annotated[
        str | None, typer.Option("--repo", help="GitHub repository (owner/name)")
    ] = None,
) -> None:
    """Enable auto-merge on an issue's linked PR."""
    gh_auto_merge_cmd(
        SimpleNamespace(
            issue_id=issue_id,
            method=_choice(method, MERGE_METHOD_VALUES, "--method"),
            repo=repo,
        )
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
