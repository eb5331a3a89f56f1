"""Error taxonomy for multi-repository operations.

Only GittyupError subclasses are converted into per-repository
error results by the orchestrator. Anything else is a programming
error and propagates.
"""

from __future__ import annotations


class GittyupError(Exception):
    """Base class for expected, reportable failures."""


class UnknownTarget(GittyupError):
    """A target name is neither a known group nor a repository."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(
            f'"{target}" is not a known group or repo. '
            f'Check the groups defined in gittyup.yaml.'
        )


class PathNotFound(GittyupError):
    """A repository's working copy does not exist on disk."""

    def __init__(self, repo: str, path):
        self.repo = repo
        self.path = path
        super().__init__(f"Repo path not found: {path} ({repo})")


class VcsError(GittyupError):
    """The version-control tool failed for a reason other than a
    detected conflict."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip()
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AiUnavailable(GittyupError):
    """The AI resolution capability could not produce an answer."""


class ConflictParseError(ValueError):
    """Conflict markers in a file are malformed."""


__all__ = [
    "GittyupError",
    "UnknownTarget",
    "PathNotFound",
    "VcsError",
    "AiUnavailable",
    "ConflictParseError",
]
