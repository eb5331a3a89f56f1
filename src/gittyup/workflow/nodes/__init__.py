"""Workflow nodes for the per-repository graph."""

from gittyup.workflow.nodes.operate import Operate
from gittyup.workflow.nodes.push import Push
from gittyup.workflow.nodes.resolve_conflicts import ResolveConflicts

__all__ = [
    "Operate",
    "ResolveConflicts",
    "Push",
]
