"""ResolveConflicts node - interactive resolution session."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from gittyup.core.log import logger
from gittyup.core.result import OperationResult
from gittyup.session.resolution import SessionStatus
from gittyup.workflow.state import PromotionState


@dataclass
class ResolveConflicts(BaseNode[PromotionState, None, OperationResult]):
    """Run a resolution session for the conflicts on disk."""

    async def run(
        self, ctx: GraphRunContext[PromotionState]
    ) -> Operate | Push | End[OperationResult]:
        """Returns:
            Operate: Cherry-pick resolved and committed with commits
                left to apply
            Push: Resolved, or escalated with push requested
            End: Left partially resolved or aborted
        """
        state = ctx.state
        target = state.target

        session = state.resolver.start(
            target.operation, target.source_branch, target.target_branch
        )
        state.session = session
        await state.resolver.run(session)
        logger.info(
            f"{state.repo_name}: session {session.status.value}",
            resolved=len(session.resolved_files),
            files=len(session.files),
        )

        from gittyup.workflow.nodes.operate import Operate
        from gittyup.workflow.nodes.push import Push

        if session.status == SessionStatus.RESOLVED:
            if target.operation == "cherry-pick" and session.commit:
                state.applied.append(state.failed_at)
                if state.remaining:
                    return Operate(commits=tuple(state.remaining))
            return Push()

        if session.status == SessionStatus.ESCALATED and state.push:
            return Push()

        return End(state.result())
