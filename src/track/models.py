"""Pydantic models for dispatch options and external boundary payloads."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

RUNNER_VALUES = ("codex", "claude")
Runner = Literal["codex", "claude"]

MODE_VALUES = ("execution", "plan")
Mode = Literal["execution", "plan"]

MERGE_METHOD_VALUES = ("merge", "squash", "rebase")
MergeMethod = Literal["merge", "squash", "rebase"]

CheckSummary = Literal["failure", "pending", "success"]


def _clean_str(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    return value


class DispatchOptions(BaseModel):
    """Caller-supplied configuration for one dispatch run.

    Attributes:
        runner: Implementation runner (codex|claude).
        mode: Runner working mode (execution|plan).
        base: Base branch for new branches and ahead-commit counting.
        merge_method: Pull request merge strategy (merge|squash|rebase).
        no_merge: Stop after CI succeeds, leaving the issue ``finished``.

    Example:
        >>> DispatchOptions(runner="claude", merge_method="squash").merge_method
        'squash'
    """

    model_config = ConfigDict(frozen=True)

    runner: Runner = "codex"
    mode: Mode = "execution"
    base: str = "main"
    merge_method: MergeMethod = "merge"
    no_merge: bool = False

    @field_validator("runner", "mode", "merge_method", mode="before")
    @classmethod
    def normalize_choice(cls, value: object) -> object:
        return _clean_str(value)

    @field_validator("base", mode="before")
    @classmethod
    def normalize_base(cls, value: object) -> object:
        if value is None:
            return "main"
        if isinstance(value, str):
            normalized = value.strip()
            return normalized or "main"
        return value


class Issue(BaseModel):
    """Read-only view of a tracked issue."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    status: str = ""


class PullRequestLink(BaseModel):
    """Persisted issue to pull request link."""

    model_config = ConfigDict(extra="ignore")

    issue_id: str
    pr_ref: str
    repo: str = ""
    created_at: str = ""
    updated_at: str = ""

    @field_validator("repo", mode="before")
    @classmethod
    def normalize_repo(cls, value: object) -> object:
        if value is None:
            return ""
        return _clean_str(value)


class Check(BaseModel):
    """One CI check reported by ``gh pr checks --json name,state,link``."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    state: str = ""
    link: str = ""

    @field_validator("name", "state", "link", mode="before")
    @classmethod
    def normalize_text(cls, value: object) -> object:
        if value is None:
            return ""
        return value


class PrMergeState(BaseModel):
    """Merge signal from ``gh pr view --json state,mergedAt``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    state: str = ""
    merged_at: str | None = Field(default=None, alias="mergedAt")

    @property
    def merged(self) -> bool:
        if self.merged_at and self.merged_at.strip():
            return True
        return self.state.strip().upper() == "MERGED"


class PrListItem(BaseModel):
    """Entry from ``gh pr list --json number``."""

    model_config = ConfigDict(extra="ignore")

    number: int


class RegisteredHook(BaseModel):
    """Shell command registered for a lifecycle event."""

    model_config = ConfigDict(extra="ignore")

    id: int
    event: str
    run_cmd: str
    cwd: str = ""

    @field_validator("cwd", mode="before")
    @classmethod
    def normalize_cwd(cls, value: object) -> object:
        if value is None:
            return ""
        return value
