"""Operate node - merge or cherry-pick on the target branch."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from gittyup.core.log import logger
from gittyup.core.result import OperationResult
from gittyup.core.target import MergeTarget
from gittyup.workflow.state import PromotionState


@dataclass
class Operate(BaseNode[PromotionState, None, OperationResult]):
    """Run the repository's merge or cherry-pick.

    commits limits a cherry-pick to the given commits; it is set when
    the run resumes after a resolved conflict.
    """

    commits: tuple[str, ...] | None = None

    async def run(
        self, ctx: GraphRunContext[PromotionState]
    ) -> ResolveConflicts | Push:
        from gittyup.workflow.nodes.push import Push
        from gittyup.workflow.nodes.resolve_conflicts import (
            ResolveConflicts,
        )

        state = ctx.state
        target = state.target
        state.remaining = []

        if isinstance(target, MergeTarget):
            outcome = state.driver.merge(
                target.source_branch, target.target_branch
            )
            if outcome.success:
                return Push()
            logger.warn(
                f"{state.repo_name}: {len(outcome.conflicts)} conflict(s)"
            )
            return ResolveConflicts()

        commits = list(
            self.commits if self.commits is not None else target.commits
        )
        outcome = state.driver.cherry_pick(commits, target.target_branch)
        state.applied.extend(outcome.applied)
        if outcome.success:
            return Push()

        state.failed_at = outcome.failed_at
        state.remaining = commits[commits.index(outcome.failed_at) + 1:]
        logger.warn(
            f"{state.repo_name}: conflict at commit "
            f"{outcome.failed_at[:8]}",
            applied=len(outcome.applied),
            remaining=len(state.remaining),
        )
        return ResolveConflicts()
