"""Issue store boundary used by dispatch and the PR monitor.

Only the operations the delivery pipeline consumes are exposed: reading an
issue, changing its status, registering custom statuses, and reading PR links
and hook registrations. Issue CRUD lives elsewhere.
"""

from __future__ import annotations

import re
import sqlite3
from pathlib import Path
from typing import Protocol

from .config import utc_now
from .models import Issue, PullRequestLink, RegisteredHook

STATUS_TODO = "todo"
STATUS_READY = "ready"
STATUS_IN_PROGRESS = "in_progress"
STATUS_DONE = "done"
STATUS_ARCHIVED = "archived"
BUILTIN_STATUSES = (
    STATUS_TODO,
    STATUS_READY,
    STATUS_IN_PROGRESS,
    STATUS_DONE,
    STATUS_ARCHIVED,
)

_STATUS_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]*$")

_SCHEMA = (
    """CREATE TABLE IF NOT EXISTS issues (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'todo',
        priority TEXT NOT NULL DEFAULT 'p2',
        assignee TEXT,
        due TEXT,
        labels_json TEXT NOT NULL DEFAULT '[]',
        next_action TEXT,
        body TEXT,
        order_index INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS hooks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event TEXT NOT NULL,
        run_cmd TEXT NOT NULL,
        cwd TEXT,
        created_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS github_links (
        issue_id TEXT PRIMARY KEY,
        pr_ref TEXT NOT NULL,
        repo TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS statuses (
        name TEXT PRIMARY KEY,
        system INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
)


class StoreError(RuntimeError):
    """Raised when the issue store cannot complete an operation."""


class IssueNotFoundError(StoreError):
    """Raised when an issue or link row does not exist."""


class StatusExistsError(StoreError):
    """Raised when registering a status that is already known."""


class IssueStore(Protocol):
    """Issue store operations consumed by dispatch and the PR monitor."""

    def get_issue(self, issue_id: str) -> Issue: ...

    def update_status(self, issue_id: str, status: str) -> Issue: ...

    def add_status(self, name: str) -> None: ...

    def list_links(self, repo: str | None = None) -> list[PullRequestLink]: ...

    def get_link(self, issue_id: str) -> PullRequestLink: ...

    def upsert_link(self, issue_id: str, pr_ref: str, repo: str | None = None) -> None: ...

    def list_hooks(self, event: str) -> list[RegisteredHook]: ...


def normalize_status_name(value: str) -> str:
    return value.strip().lower()


def validate_status_name(value: str) -> None:
    """Reject status names that are not lowercase identifiers.

    Example:
        >>> validate_status_name("finished")
        >>> validate_status_name("Bad Name")
        Traceback (most recent call last):
        ...
        track.store.StoreError: invalid status name: Bad Name
    """
    if not _STATUS_NAME_RE.match(value):
        raise StoreError(f"invalid status name: {value}")


class SqliteIssueStore:
    """SQLite adapter over the shared ``track.db`` database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: Path) -> SqliteIssueStore:
        """Open the database at ``path``, creating missing tables."""
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            connection = sqlite3.connect(path)
        except sqlite3.Error as exc:
            raise StoreError(f"open sqlite: {exc}") from exc
        store = cls(connection)
        store._init_schema()
        return store

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> SqliteIssueStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _init_schema(self) -> None:
        now = utc_now()
        try:
            with self._connection:
                self._connection.execute("PRAGMA busy_timeout=5000")
                for statement in _SCHEMA:
                    self._connection.execute(statement)
                for name in BUILTIN_STATUSES:
                    self._connection.execute(
                        "INSERT INTO statuses(name, system, created_at, updated_at) "
                        "VALUES(?, 1, ?, ?) ON CONFLICT(name) DO NOTHING",
                        (name, now, now),
                    )
        except sqlite3.Error as exc:
            raise StoreError(f"init schema: {exc}") from exc

    def get_issue(self, issue_id: str) -> Issue:
        row = self._query_one(
            "SELECT id, title, status FROM issues WHERE id = ?", (issue_id,), what="issue"
        )
        if row is None:
            raise IssueNotFoundError(f"issue not found: {issue_id}")
        return Issue(id=row["id"], title=row["title"], status=row["status"])

    def list_statuses(self) -> list[str]:
        rows = self._query_all("SELECT name FROM statuses ORDER BY name ASC", (), what="statuses")
        return [str(row["name"]) for row in rows]

    def _status_known(self, name: str) -> bool:
        if name in BUILTIN_STATUSES:
            return True
        row = self._query_one("SELECT name FROM statuses WHERE name = ?", (name,), what="status")
        return row is not None

    def update_status(self, issue_id: str, status: str) -> Issue:
        if not self._status_known(status):
            raise StoreError(f"invalid status: {status}")
        self.get_issue(issue_id)
        self._execute(
            "UPDATE issues SET status = ?, updated_at = ? WHERE id = ?",
            (status, utc_now(), issue_id),
            what="update issue",
        )
        return self.get_issue(issue_id)

    def add_status(self, name: str) -> None:
        normalized = normalize_status_name(name)
        validate_status_name(normalized)
        if self._status_known(normalized):
            raise StatusExistsError(f"status already exists: {normalized}")
        now = utc_now()
        self._execute(
            "INSERT INTO statuses(name, system, created_at, updated_at) VALUES(?, 0, ?, ?)",
            (normalized, now, now),
            what="add status",
        )

    def list_links(self, repo: str | None = None) -> list[PullRequestLink]:
        """List PR links, optionally scoped to one repository.

        Links stored without a repository are included in every scope.
        """
        query = (
            "SELECT issue_id, pr_ref, COALESCE(repo, '') AS repo, created_at, updated_at "
            "FROM github_links"
        )
        params: tuple[str, ...] = ()
        if repo:
            query += " WHERE repo = ? OR repo IS NULL OR repo = ''"
            params = (repo,)
        query += " ORDER BY issue_id ASC"
        rows = self._query_all(query, params, what="github links")
        return [PullRequestLink.model_validate(dict(row)) for row in rows]

    def get_link(self, issue_id: str) -> PullRequestLink:
        row = self._query_one(
            "SELECT issue_id, pr_ref, COALESCE(repo, '') AS repo, created_at, updated_at "
            "FROM github_links WHERE issue_id = ?",
            (issue_id,),
            what="github link",
        )
        if row is None:
            raise IssueNotFoundError(f"github link not found: {issue_id}")
        return PullRequestLink.model_validate(dict(row))

    def upsert_link(self, issue_id: str, pr_ref: str, repo: str | None = None) -> None:
        now = utc_now()
        self._execute(
            """INSERT INTO github_links(issue_id, pr_ref, repo, created_at, updated_at)
            VALUES(?, ?, ?, ?, ?)
            ON CONFLICT(issue_id) DO UPDATE SET
                pr_ref=excluded.pr_ref,
                repo=excluded.repo,
                updated_at=excluded.updated_at""",
            (issue_id, pr_ref, repo or None, now, now),
            what="upsert github link",
        )

    def list_hooks(self, event: str) -> list[RegisteredHook]:
        rows = self._query_all(
            "SELECT id, event, run_cmd, cwd FROM hooks WHERE event = ? ORDER BY id ASC",
            (event,),
            what="hooks",
        )
        return [RegisteredHook.model_validate(dict(row)) for row in rows]

    def _execute(self, query: str, params: tuple[object, ...], *, what: str) -> None:
        try:
            with self._connection:
                self._connection.execute(query, params)
        except sqlite3.Error as exc:
            raise StoreError(f"{what}: {exc}") from exc

    def _query_one(
        self, query: str, params: tuple[object, ...], *, what: str
    ) -> sqlite3.Row | None:
        try:
            return self._connection.execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"get {what}: {exc}") from exc

    def _query_all(
        self, query: str, params: tuple[object, ...], *, what: str
    ) -> list[sqlite3.Row]:
        try:
            return list(self._connection.execute(query, params).fetchall())
        except sqlite3.Error as exc:
            raise StoreError(f"list {what}: {exc}") from exc
