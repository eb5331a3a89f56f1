"""Per-repository operation targets.

A target binds a repository to actual branch names. Aliases such as
``dev`` are expanded here, once per repository, before anything runs.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gittyup.core.config import RepoConfig


class MergeTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation: Literal["merge"] = "merge"
    repo: RepoConfig
    source_branch: str
    target_branch: str


class CherryPickTarget(BaseModel):
    """Commits to apply, in order, onto target_branch.

    source_branch is informational (PR text, commit selection).
    """

    model_config = ConfigDict(frozen=True)

    operation: Literal["cherry-pick"] = "cherry-pick"
    repo: RepoConfig
    source_branch: str
    target_branch: str
    commits: tuple[str, ...] = Field(min_length=1)

    @field_validator("commits")
    @classmethod
    def _no_blank_commits(cls, commits: tuple[str, ...]):
        if any(not c.strip() for c in commits):
            raise ValueError("commit ids must not be blank")
        return commits


OperationTarget = MergeTarget | CherryPickTarget


def build_merge_targets(
    repos: list[RepoConfig], source: str, target: str
) -> list[MergeTarget]:
    """One MergeTarget per repository, aliases resolved per repo."""
    return [
        MergeTarget(
            repo=repo,
            source_branch=repo.resolve_branch(source),
            target_branch=repo.resolve_branch(target),
        )
        for repo in repos
    ]


def build_cherry_pick_targets(
    repos: list[RepoConfig],
    commits: list[str],
    target: str,
    source: str = "dev",
) -> list[CherryPickTarget]:
    return [
        CherryPickTarget(
            repo=repo,
            source_branch=repo.resolve_branch(source),
            target_branch=repo.resolve_branch(target),
            commits=tuple(commits),
        )
        for repo in repos
    ]
