"""Tests for per-repository operation targets."""

import pytest
from pydantic import ValidationError

from gittyup.core.config import RepoConfig
from gittyup.core.target import (
    CherryPickTarget,
    build_cherry_pick_targets,
    build_merge_targets,
)

api = RepoConfig(name="api", path="api", branches={"dev": "develop"})
auth = RepoConfig(name="auth", path="auth", branches={"dev": "dev"})


def test_merge_targets_expand_aliases_per_repo():
    targets = build_merge_targets([api, auth], "dev", "main")

    assert [(t.repo.name, t.source_branch, t.target_branch)
            for t in targets] == [
        ("api", "develop", "main"),
        ("auth", "dev", "main"),
    ]
    assert all(t.operation == "merge" for t in targets)


def test_cherry_pick_targets_share_commits():
    targets = build_cherry_pick_targets(
        [api, auth], ["abc123", "def456"], "prod"
    )

    assert [t.commits for t in targets] == [("abc123", "def456")] * 2
    assert [t.source_branch for t in targets] == ["develop", "dev"]
    # prod is not in either branch map, so it passes through
    assert [t.target_branch for t in targets] == ["prod", "prod"]


def test_cherry_pick_needs_commits():
    with pytest.raises(ValidationError):
        CherryPickTarget(
            repo=api, source_branch="develop", target_branch="main",
            commits=(),
        )


def test_cherry_pick_rejects_blank_commit():
    with pytest.raises(ValidationError, match="blank"):
        CherryPickTarget(
            repo=api, source_branch="develop", target_branch="main",
            commits=("abc", " "),
        )


def test_targets_are_frozen():
    [target] = build_merge_targets([api], "dev", "main")

    with pytest.raises(ValidationError):
        target.target_branch = "other"
