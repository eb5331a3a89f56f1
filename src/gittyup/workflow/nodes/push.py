"""Push node - publish the result and finish the run."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from gittyup.core.log import logger
from gittyup.core.result import OperationResult
from gittyup.workflow.state import PromotionState


@dataclass
class Push(BaseNode[PromotionState, None, OperationResult]):
    """Push the target (or escalation) branch when requested."""

    async def run(
        self, ctx: GraphRunContext[PromotionState]
    ) -> End[OperationResult]:
        state = ctx.state
        if state.push:
            branch = state.push_branch()
            if branch is None:
                logger.info(
                    f"{state.repo_name}: nothing committed, not pushing"
                )
            else:
                remote = state.target.repo.remote
                state.driver.push(remote, branch)
                state.pushed = branch
                logger.info(f"{state.repo_name}: pushed {remote}/{branch}")

        return End(state.result())
