"""Outcome models returned by the driver, registry and engine."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from gittyup.session.resolution import ConflictResolutionSession


class OperationStatus(str, Enum):
    """Terminal status of one repository in a run."""

    SUCCESS = "success"
    CONFLICT = "conflict"
    ERROR = "error"
    SKIPPED = "skipped"


class MergeOutcome(BaseModel):
    success: bool
    conflicts: list[str] = Field(default_factory=list)


class CherryPickOutcome(BaseModel):
    """Result of applying commits in order.

    applied always lists the commits that landed before failed_at.
    """

    success: bool
    applied: list[str] = Field(default_factory=list)
    failed_at: str | None = None
    conflicts: list[str] = Field(default_factory=list)


class CommitInfo(BaseModel):
    id: str
    date: str
    message: str
    author: str

    @property
    def short_id(self) -> str:
        return self.id[:7]


class FetchResult(BaseModel):
    repo: str
    success: bool
    error: str | None = None


class OperationResult(BaseModel):
    """One repository's outcome; immutable once produced.

    session is set for conflict results so the caller can report
    which files are still unresolved or where the work was escalated.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    repo: str
    status: OperationStatus
    message: str
    session: ConflictResolutionSession | None = None
    pr_url: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (
            OperationStatus.SUCCESS, OperationStatus.SKIPPED
        )

