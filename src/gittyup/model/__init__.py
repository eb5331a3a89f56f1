"""LLM model wrappers."""

from gittyup.model.resolver import AiResolver

__all__ = [
    "AiResolver",
]
