"""Tests for the dispatch pipeline command sequence and status flow."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.track.helpers import (
    ExpectedCommand,
    FakeIssueStore,
    RecordingHooks,
    ScriptedRunner,
    cmd,
    interactive,
)
from track import dispatch as dispatch_mod
from track.models import DispatchOptions
from track.prs import PR_BODY_TEMPLATE

ISSUE_ID = "TRK-12"
BRANCH = "codex/trk-12"
STATUS_EVENTS = [
    ("issue.updated", ISSUE_ID),
    ("issue.status_changed", ISSUE_ID),
]
DONE_EVENTS = [*STATUS_EVENTS, ("issue.completed", ISSUE_ID)]


def _worktree(repo: Path) -> Path:
    return repo / ".worktree" / "trk-12"


def _prepare_commands(repo: Path, *, branch_exists: bool = False) -> list[ExpectedCommand]:
    worktree = _worktree(repo)

    def make_worktree() -> None:
        worktree.mkdir(parents=True)

    commands = [
        cmd(repo, "git", "rev-parse", "--show-toplevel", output=f"{repo}\n"),
    ]
    if branch_exists:
        commands.extend(
            [
                cmd(repo, "git", "show-ref", "--verify", "--quiet", f"refs/heads/{BRANCH}"),
                cmd(repo, "git", "worktree", "add", str(worktree), BRANCH, after=make_worktree),
            ]
        )
    else:
        commands.extend(
            [
                cmd(
                    repo,
                    "git",
                    "show-ref",
                    "--verify",
                    "--quiet",
                    f"refs/heads/{BRANCH}",
                    error="exit status 1",
                ),
                cmd(
                    repo,
                    "git",
                    "worktree",
                    "add",
                    "-b",
                    BRANCH,
                    str(worktree),
                    "main",
                    after=make_worktree,
                ),
            ]
        )
    commands.append(
        interactive(
            worktree,
            "exec_codex",
            "--sandbox",
            "danger-full-access",
            "execution",
            ISSUE_ID,
        )
    )
    return commands


def _publish_commands(repo: Path, *, dirty: bool = True) -> list[ExpectedCommand]:
    worktree = _worktree(repo)
    commands = [
        cmd(worktree, "git", "status", "--porcelain", output=" M app.py" if dirty else ""),
        cmd(worktree, "git", "rev-list", "--count", "main..HEAD", output="0" if dirty else "2"),
    ]
    if dirty:
        commands.extend(
            [
                cmd(worktree, "git", "add", "-A"),
                cmd(worktree, "git", "commit", "-m", f"chore: apply {ISSUE_ID} via track dispatch"),
            ]
        )
    commands.extend(
        [
            cmd(worktree, "git", "push", "-u", "origin", BRANCH),
            cmd(
                worktree,
                "gh",
                "pr",
                "list",
                "--head",
                BRANCH,
                "--state",
                "open",
                "--json",
                "number",
                output="[]",
            ),
            cmd(
                worktree,
                "gh",
                "pr",
                "create",
                "--head",
                BRANCH,
                "--base",
                "main",
                "--title",
                f"{ISSUE_ID}: Fix things",
                "--body",
                PR_BODY_TEMPLATE.format(issue_id=ISSUE_ID),
                output="https://github.com/org/repo/pull/42\n",
            ),
        ]
    )
    return commands


def _store() -> FakeIssueStore:
    store = FakeIssueStore()
    store.add_issue(ISSUE_ID)
    return store


def _run(
    repo: Path,
    runner: ScriptedRunner,
    store: FakeIssueStore,
    hooks: RecordingHooks,
    /,
    **options: object,
) -> dispatch_mod.DispatchOutcome:
    return dispatch_mod.run_dispatch(
        ISSUE_ID,
        cwd=repo,
        store=store,
        hooks=hooks,
        runner=runner,
        options=DispatchOptions(**options),
    )


def test_full_run_merges_and_marks_done(tmp_path: Path) -> None:
    worktree = _worktree(tmp_path)
    runner = ScriptedRunner(
        [
            *_prepare_commands(tmp_path),
            *_publish_commands(tmp_path),
            cmd(worktree, "gh", "pr", "checks", "42", "--watch"),
            cmd(worktree, "gh", "pr", "merge", "42", "--merge", "--delete-branch"),
        ]
    )
    store = _store()
    hooks = RecordingHooks()

    outcome = _run(tmp_path, runner, store, hooks)

    runner.assert_done()
    assert outcome is dispatch_mod.DispatchOutcome.DONE
    assert store.issues[ISSUE_ID].status == "done"
    assert [status for _, status in store.status_history] == ["in_progress", "finished", "done"]
    assert "finished" in store.statuses
    assert hooks.fired == [*STATUS_EVENTS, *STATUS_EVENTS, *DONE_EVENTS]
    remote_calls = [
        (program, args[:2])
        for _, _, program, args in runner.calls
        if program == "gh" or args[:1] == ("push",)
    ]
    assert remote_calls == [
        ("git", ("push", "-u")),
        ("gh", ("pr", "list")),
        ("gh", ("pr", "create")),
        ("gh", ("pr", "checks")),
        ("gh", ("pr", "merge")),
    ]


def test_no_merge_stops_at_finished(tmp_path: Path) -> None:
    worktree = _worktree(tmp_path)
    runner = ScriptedRunner(
        [
            *_prepare_commands(tmp_path),
            *_publish_commands(tmp_path),
            cmd(worktree, "gh", "pr", "checks", "42", "--watch"),
        ]
    )
    store = _store()
    hooks = RecordingHooks()

    outcome = _run(tmp_path, runner, store, hooks, no_merge=True)

    runner.assert_done()
    assert outcome is dispatch_mod.DispatchOutcome.FINISHED
    assert store.issues[ISSUE_ID].status == "finished"
    assert ("issue.completed", ISSUE_ID) not in hooks.fired


def test_ci_failure_leaves_finished_and_skips_merge(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    worktree = _worktree(tmp_path)
    runner = ScriptedRunner(
        [
            *_prepare_commands(tmp_path),
            *_publish_commands(tmp_path),
            cmd(worktree, "gh", "pr", "checks", "42", "--watch", error="checks failed"),
        ]
    )
    store = _store()

    with pytest.raises(dispatch_mod.DispatchStepError) as excinfo:
        _run(tmp_path, runner, store, RecordingHooks())

    runner.assert_done()
    assert excinfo.value.index == 8
    assert excinfo.value.name == "watch CI checks"
    assert "checks failed" in str(excinfo.value)
    assert store.issues[ISSUE_ID].status == "finished"
    assert "failed step 8 (watch CI checks)" in capsys.readouterr().err


def test_squash_merge_method_is_forwarded(tmp_path: Path) -> None:
    worktree = _worktree(tmp_path)
    runner = ScriptedRunner(
        [
            *_prepare_commands(tmp_path),
            *_publish_commands(tmp_path),
            cmd(worktree, "gh", "pr", "checks", "42", "--watch"),
            cmd(worktree, "gh", "pr", "merge", "42", "--squash", "--delete-branch"),
        ]
    )

    _run(tmp_path, runner, _store(), RecordingHooks(), merge_method="squash")

    runner.assert_done()


def test_no_changes_ends_successfully_without_publishing(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    worktree = _worktree(tmp_path)
    runner = ScriptedRunner(
        [
            *_prepare_commands(tmp_path),
            cmd(worktree, "git", "status", "--porcelain", output=""),
            cmd(worktree, "git", "rev-list", "--count", "main..HEAD", output="0"),
        ]
    )
    store = _store()
    hooks = RecordingHooks()

    outcome = _run(tmp_path, runner, store, hooks)

    runner.assert_done()
    assert outcome is dispatch_mod.DispatchOutcome.NO_CHANGES
    assert store.issues[ISSUE_ID].status == "in_progress"
    assert hooks.fired == STATUS_EVENTS
    assert "no changes detected" in capsys.readouterr().out


def test_unpushed_commits_push_without_committing(tmp_path: Path) -> None:
    worktree = _worktree(tmp_path)
    runner = ScriptedRunner(
        [
            *_prepare_commands(tmp_path),
            *_publish_commands(tmp_path, dirty=False),
            cmd(worktree, "gh", "pr", "checks", "42", "--watch"),
            cmd(worktree, "gh", "pr", "merge", "42", "--merge", "--delete-branch"),
        ]
    )

    _run(tmp_path, runner, _store(), RecordingHooks())

    runner.assert_done()
    assert ("git", "commit") not in runner.programs_and_first_args()


def test_existing_branch_and_open_pr_are_reused(tmp_path: Path) -> None:
    worktree = _worktree(tmp_path)
    publish = _publish_commands(tmp_path)
    pr_list = publish[-2]
    pr_list.output = '[{"number": 7}]'
    runner = ScriptedRunner(
        [
            *_prepare_commands(tmp_path, branch_exists=True),
            *publish[:-1],
            cmd(worktree, "gh", "pr", "checks", "7", "--watch"),
            cmd(worktree, "gh", "pr", "merge", "7", "--merge", "--delete-branch"),
        ]
    )

    _run(tmp_path, runner, _store(), RecordingHooks())

    runner.assert_done()


def test_existing_worktree_directory_is_reused(tmp_path: Path) -> None:
    worktree = _worktree(tmp_path)
    worktree.mkdir(parents=True)
    (worktree / "exec_claude").write_text("#!/bin/sh\n", encoding="utf-8")
    runner = ScriptedRunner(
        [
            cmd(tmp_path, "git", "rev-parse", "--show-toplevel", output=str(tmp_path)),
            interactive(
                worktree,
                str(worktree / "exec_claude"),
                "--sandbox",
                "danger-full-access",
                "plan",
                ISSUE_ID,
            ),
            cmd(worktree, "git", "status", "--porcelain", output=""),
            cmd(worktree, "git", "rev-list", "--count", "main..HEAD", output="0"),
        ]
    )

    outcome = _run(tmp_path, runner, _store(), RecordingHooks(), runner="claude", mode="plan")

    runner.assert_done()
    assert outcome is dispatch_mod.DispatchOutcome.NO_CHANGES


def test_worktree_path_that_is_a_file_fails_step_two(tmp_path: Path) -> None:
    worktree = _worktree(tmp_path)
    worktree.parent.mkdir(parents=True)
    worktree.write_text("not a directory", encoding="utf-8")
    runner = ScriptedRunner(
        [cmd(tmp_path, "git", "rev-parse", "--show-toplevel", output=str(tmp_path))]
    )

    with pytest.raises(dispatch_mod.DispatchStepError) as excinfo:
        _run(tmp_path, runner, _store(), RecordingHooks())

    assert excinfo.value.index == 2
    assert excinfo.value.name == "prepare worktree"


def test_runner_failure_aborts_before_change_detection(tmp_path: Path) -> None:
    commands = _prepare_commands(tmp_path)
    commands[-1].error = "exit status 2"
    runner = ScriptedRunner(commands)
    store = _store()

    with pytest.raises(dispatch_mod.DispatchStepError) as excinfo:
        _run(tmp_path, runner, store, RecordingHooks())

    runner.assert_done()
    assert excinfo.value.name == "run implementation runner"
    assert store.issues[ISSUE_ID].status == "in_progress"


def test_hook_failure_aborts_first_step(tmp_path: Path) -> None:
    runner = ScriptedRunner([])
    hooks = RecordingHooks(fail_on="issue.status_changed")

    with pytest.raises(dispatch_mod.DispatchStepError) as excinfo:
        _run(tmp_path, runner, _store(), hooks)

    assert excinfo.value.index == 1
    assert excinfo.value.name == "prepare issue status"
    assert runner.calls == []


def test_missing_issue_fails_first_step(tmp_path: Path) -> None:
    with pytest.raises(dispatch_mod.DispatchStepError) as excinfo:
        _run(tmp_path, ScriptedRunner([]), FakeIssueStore(), RecordingHooks())

    assert excinfo.value.index == 1
    assert "issue not found" in str(excinfo.value)


def test_finished_status_registration_tolerates_existing() -> None:
    store = FakeIssueStore()
    store.statuses.add("finished")

    dispatch_mod.ensure_finished_status(store)

    assert "finished" in store.statuses


def test_step_runner_numbers_steps_and_stops_on_outcome(
    capsys: pytest.CaptureFixture[str],
) -> None:
    state = dispatch_mod.DispatchRun(issue_id=ISSUE_ID, cwd=Path("."))
    seen: list[str] = []
    steps = [
        dispatch_mod.DispatchStep("first", lambda: seen.append("first")),
        dispatch_mod.DispatchStep("second", lambda: dispatch_mod.DispatchOutcome.NO_CHANGES),
        dispatch_mod.DispatchStep("third", lambda: seen.append("third")),
    ]

    outcome = dispatch_mod.StepRunner(state).run_steps(steps)

    assert outcome is dispatch_mod.DispatchOutcome.NO_CHANGES
    assert seen == ["first"]
    out = capsys.readouterr().out
    assert "step 1: first" in out
    assert "step 2: second" in out
    assert "third" not in out
