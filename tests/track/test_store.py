"""Tests for the SQLite issue store adapter."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from track import store as store_mod


def _insert(db: Path, query: str, params: tuple[object, ...]) -> None:
    connection = sqlite3.connect(db)
    try:
        with connection:
            connection.execute(query, params)
    finally:
        connection.close()


def _open_with_issue(tmp_path: Path) -> store_mod.SqliteIssueStore:
    db = tmp_path / "track.db"
    store = store_mod.SqliteIssueStore.open(db)
    _insert(
        db,
        "INSERT INTO issues(id, title, status, created_at, updated_at) VALUES(?, ?, ?, ?, ?)",
        ("TRK-1", "Add login", "ready", "2024-01-01T00:00:00Z", "2024-01-01T00:00:00Z"),
    )
    return store


def test_open_seeds_builtin_statuses(tmp_path: Path) -> None:
    with store_mod.SqliteIssueStore.open(tmp_path / "nested" / "track.db") as store:
        assert set(store_mod.BUILTIN_STATUSES) <= set(store.list_statuses())


def test_get_and_update_issue_status(tmp_path: Path) -> None:
    with _open_with_issue(tmp_path) as store:
        assert store.get_issue("TRK-1").title == "Add login"

        updated = store.update_status("TRK-1", "in_progress")

        assert updated.status == "in_progress"
        assert store.get_issue("TRK-1").status == "in_progress"


def test_missing_issue_raises_not_found(tmp_path: Path) -> None:
    with store_mod.SqliteIssueStore.open(tmp_path / "track.db") as store:
        with pytest.raises(store_mod.IssueNotFoundError, match="issue not found: TRK-9"):
            store.get_issue("TRK-9")


def test_unknown_status_is_rejected(tmp_path: Path) -> None:
    with _open_with_issue(tmp_path) as store:
        with pytest.raises(store_mod.StoreError, match="invalid status: finished"):
            store.update_status("TRK-1", "finished")


def test_custom_status_registration_is_not_idempotent(tmp_path: Path) -> None:
    with _open_with_issue(tmp_path) as store:
        store.add_status("Finished")

        with pytest.raises(store_mod.StatusExistsError):
            store.add_status("finished")
        with pytest.raises(store_mod.StatusExistsError):
            store.add_status("done")

        assert store.update_status("TRK-1", "finished").status == "finished"


def test_links_round_trip_and_repo_scope(tmp_path: Path) -> None:
    with _open_with_issue(tmp_path) as store:
        store.upsert_link("TRK-1", "42", "org/repo")
        store.upsert_link("TRK-2", "43", None)
        store.upsert_link("TRK-3", "44", "org/other")
        store.upsert_link("TRK-1", "45", "org/repo")

        assert store.get_link("TRK-1").pr_ref == "45"
        assert [link.issue_id for link in store.list_links()] == ["TRK-1", "TRK-2", "TRK-3"]
        assert [link.issue_id for link in store.list_links("org/repo")] == ["TRK-1", "TRK-2"]
        with pytest.raises(store_mod.IssueNotFoundError):
            store.get_link("TRK-4")


def test_list_hooks_filters_by_event(tmp_path: Path) -> None:
    db = tmp_path / "track.db"
    with store_mod.SqliteIssueStore.open(db) as store:
        for event, command in (("issue.completed", "notify done"), ("issue.updated", "true")):
            _insert(
                db,
                "INSERT INTO hooks(event, run_cmd, cwd, created_at) VALUES(?, ?, NULL, ?)",
                (event, command, "2024-01-01T00:00:00Z"),
            )

        hooks = store.list_hooks("issue.completed")

    assert [(hook.run_cmd, hook.cwd) for hook in hooks] == [("notify done", "")]
