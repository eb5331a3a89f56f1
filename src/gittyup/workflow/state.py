"""Per-repository workflow state."""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict, Field

from gittyup.core.base import BaseState
from gittyup.core.result import OperationResult, OperationStatus
from gittyup.core.target import CherryPickTarget, MergeTarget
from gittyup.session.resolution import (
    ConflictResolutionSession,
    ConflictResolver,
    SessionStatus,
)


class PromotionState(BaseState):
    """Everything one repository's graph run reads and writes.

    Created by the engine for each target and discarded once the
    OperationResult has been produced.
    """

    target: MergeTarget | CherryPickTarget
    driver: Any = Field(description="VersionControlDriver for the repo")
    resolver: ConflictResolver
    push: bool = False

    applied: list[str] = Field(
        default_factory=list,
        description="Cherry-picked commits that landed on the target",
    )
    failed_at: str | None = None
    remaining: list[str] = Field(
        default_factory=list,
        description="Commits after failed_at, not yet tried",
    )
    session: ConflictResolutionSession | None = None
    pushed: str | None = Field(
        default=None, description="Branch pushed to the remote"
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def repo_name(self) -> str:
        return self.target.repo.name

    def push_branch(self) -> str | None:
        """Branch to push: the escalation branch when escalated, the
        target branch when its history is complete, else None."""
        session = self.session
        if session is None:
            return self.target.target_branch
        if session.status == SessionStatus.ESCALATED:
            return session.escalation_branch
        if session.status == SessionStatus.RESOLVED and session.commit:
            return self.target.target_branch
        return None

    def _success_message(self) -> str:
        t = self.target
        arrow = f"{t.source_branch} → {t.target_branch}"
        session = self.session

        if isinstance(t, MergeTarget):
            if session is None:
                return f"Merged {arrow}"
            message = "Conflicts resolved"
            if not session.commit:
                message += " (not committed)"
            return message

        total = len(t.commits)
        if session is not None and not session.commit:
            message = (
                f"Conflict at {self.failed_at[:8]} resolved "
                f"(not committed)"
            )
            if self.remaining:
                message += f"; {len(self.remaining)} commit(s) not applied"
            return message
        if session is None:
            return f"Applied {len(self.applied)} commit(s) to {t.target_branch}"
        return (
            f"Resolved conflicts and applied {len(self.applied)} of "
            f"{total} commit(s) to {t.target_branch}"
        )

    def result(self) -> OperationResult:
        """Turn the final state into the repository's result."""
        session = self.session
        status = OperationStatus.SUCCESS

        if session is None or session.status == SessionStatus.RESOLVED:
            message = self._success_message()
        elif session.status == SessionStatus.ESCALATED:
            status = OperationStatus.CONFLICT
            message = f"Escalated to {session.escalation_branch}"
        elif session.status == SessionStatus.PENDING:
            status = OperationStatus.SKIPPED
            message = (
                f"Aborted; {self.target.target_branch} rolled back"
            )
        else:
            status = OperationStatus.CONFLICT
            message = f"{len(session.unresolved)} unresolved"
            if self.failed_at:
                message = f"Conflict at {self.failed_at[:8]}: {message}"

        if self.pushed:
            message += f"; pushed {self.pushed}"

        return OperationResult(
            repo=self.repo_name,
            status=status,
            message=message,
            session=session,
        )
