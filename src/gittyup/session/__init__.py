"""Interactive conflict resolution."""

from gittyup.session.prompts import ClickPrompter, Prompter
from gittyup.session.resolution import (
    ConflictResolutionSession,
    ConflictResolver,
    SessionStatus,
)

__all__ = [
    "ClickPrompter",
    "ConflictResolutionSession",
    "ConflictResolver",
    "Prompter",
    "SessionStatus",
]
