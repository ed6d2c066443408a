from __future__ import annotations

import pytest

from track import checks
from track.models import Check


def _check(state: str, name: str = "ci", link: str = "") -> Check:
    return Check(name=name, state=state, link=link)


def test_parse_run_and_job() -> None:
    link = "https://github.com/a/b/actions/runs/123456/job/9876"

    assert checks.parse_run_and_job(link) == ("123456", "9876")
    assert checks.parse_run_and_job("https://github.com/a/b/actions/runs/5") == ("5", "")
    assert checks.parse_run_and_job("https://example.com/status") is None


@pytest.mark.parametrize(
    ("states", "expected"),
    [
        (["success"], "success"),
        (["in_progress"], "pending"),
        (["success", "failure"], "failure"),
        (["QUEUED", "TIMED_OUT"], "failure"),
        (["skipped", "neutral"], "success"),
        ([], "pending"),
    ],
)
def test_summarize_checks(states: list[str], expected: str) -> None:
    assert checks.summarize_checks([_check(state) for state in states]) == expected


@pytest.mark.parametrize(
    "state",
    ["failure", "failed", "error", "timed_out", "cancelled", "action_required", "startup_failure"],
)
def test_failure_states(state: str) -> None:
    assert checks.is_failure_state(f" {state.upper()} ")
    assert not checks.is_pending_state(state)


def test_tail_lines_returns_last_lines_without_trailing_newline() -> None:
    text = "one\ntwo\nthree\nfour\nfive\n"

    assert checks.tail_lines(text, 2) == "four\nfive"
    assert checks.tail_lines(text, 10) == "one\ntwo\nthree\nfour\nfive"
    assert checks.tail_lines("", 2) == ""


def test_failure_key_includes_issue_name_and_link() -> None:
    check = _check("failure", name="test", link="https://x/1")

    assert checks.failure_key("TRK-1", check) == "TRK-1::test::https://x/1"
    assert checks.failure_key("TRK-2", check) != checks.failure_key("TRK-1", check)
