"""Graph workflow definition."""

from pydantic_graph import Graph

from gittyup.core.log import logger
from gittyup.workflow.state import PromotionState


def create_workflow():
    """Create the per-repository promotion graph.

    Operate → [ResolveConflicts →] Push → End

    A resolved cherry-pick with commits left goes back to Operate.

    Returns:
        Graph workflow with PromotionState as state_type
    """
    logger.debug("Building workflow graph")

    # Import nodes (lazy to avoid circular imports)
    from gittyup.workflow.nodes.operate import Operate
    from gittyup.workflow.nodes.push import Push
    from gittyup.workflow.nodes.resolve_conflicts import ResolveConflicts

    workflow = Graph(
        nodes=(
            Operate,
            ResolveConflicts,
            Push,
        ),
        state_type=PromotionState
    )

    return workflow
