"""Manifest models and YAML loading."""

import sys

import pytest
from pydantic import ValidationError

from gittyup.core.config import (
    GroupConfig,
    Manifest,
    RepoConfig,
    State,
)
from gittyup.core.registry import RepositoryRegistry
from gittyup.core.yaml_settings import (
    YamlWithIncludesSettingsSource,
    cli_includes,
    find_manifest,
)

MANIFEST = """
workspace: ./repos

groups:
  backend:
    description: Backend services
    repos:
      - name: api
        path: api
        url: https://github.com/acme/api.git
        branches:
          dev: develop
      - name: auth
        path: /srv/auth
        branches:
          dev: dev
  frontend:
    repos:
      - name: web
        path: web

settings:
  ai_mode: manual
  conflict_branch_prefix: needs-help
"""


@pytest.fixture
def manifest_dir(tmp_path):
    (tmp_path / "gittyup.yaml").write_text(MANIFEST)
    return tmp_path


def load(manifest_dir, yaml_file=None):
    source = YamlWithIncludesSettingsSource(
        State, yaml_file=yaml_file, search_from=manifest_dir
    )
    return source()


# ---------------------------------------------------------------------------
# models
# ---------------------------------------------------------------------------

def test_repo_defaults():
    repo = RepoConfig(name="api", path="api")

    assert repo.remote == "origin"
    assert repo.url is None
    assert repo.resolve_branch("dev") == "develop"
    assert repo.resolve_branch("prod") == "main"


def test_alias_expansion_is_per_repo():
    api = RepoConfig(name="api", path="api", branches={"dev": "develop"})
    auth = RepoConfig(name="auth", path="auth", branches={"dev": "dev"})

    assert api.resolve_branch("dev") == "develop"
    assert auth.resolve_branch("dev") == "dev"
    # unknown names pass through untouched
    assert api.resolve_branch("feature/x") == "feature/x"


def test_repo_names_must_be_unique():
    with pytest.raises(ValidationError, match="must be unique"):
        Manifest(groups={
            "one": GroupConfig(repos=[RepoConfig(name="api", path="a")]),
            "two": GroupConfig(repos=[RepoConfig(name="api", path="b")]),
        })


def test_all_repos_in_manifest_order():
    manifest = Manifest(groups={
        "b": GroupConfig(repos=[RepoConfig(name="x", path="x")]),
        "a": GroupConfig(repos=[
            RepoConfig(name="y", path="y"),
            RepoConfig(name="z", path="z"),
        ]),
    })

    assert [(g, r.name) for g, r in manifest.all_repos()] == [
        ("b", "x"), ("a", "y"), ("a", "z"),
    ]


def test_resolve_repo_path(tmp_path):
    manifest = Manifest(workspace="repos")

    assert manifest.resolve_repo_path("api", tmp_path) == (
        tmp_path / "repos" / "api"
    ).resolve()
    assert manifest.resolve_repo_path("/srv/auth", tmp_path).as_posix() == (
        "/srv/auth"
    )


# ---------------------------------------------------------------------------
# loading
# ---------------------------------------------------------------------------

def test_find_manifest_walks_upwards(manifest_dir):
    nested = manifest_dir / "a" / "b"
    nested.mkdir(parents=True)

    assert find_manifest(nested) == (manifest_dir / "gittyup.yaml").resolve()


def test_manifest_keys_move_under_config(manifest_dir):
    data = load(manifest_dir)

    manifest = data["config"]["manifest"]
    assert "groups" not in data
    assert manifest["workspace"] == "./repos"
    assert [r["name"] for r in manifest["groups"]["backend"]["repos"]] == [
        "api", "auth",
    ]
    assert data["config"]["manifest_dir"] == str(manifest_dir.resolve())


def test_package_defaults_load_underneath(manifest_dir):
    data = load(manifest_dir)

    assert data["config"]["llm"]["model"] == "openai:gpt-4o"
    assert "auto" in data["config"]["prompts"]["resolver"]


def test_state_from_manifest(manifest_dir, mock_argv):
    data = load(manifest_dir)
    state = State(**data)
    manifest = state.config.manifest

    assert list(manifest.groups) == ["backend", "frontend"]
    assert manifest.settings.ai_mode == "manual"
    assert manifest.settings.conflict_branch_prefix == "needs-help"
    assert manifest.settings.pr_labels == ["gittyup"]
    registry = RepositoryRegistry.from_config(state.config)
    assert registry.path_for(
        manifest.groups["frontend"].repos[0]
    ) == (manifest_dir / "repos" / "web").resolve()


def test_include_directive(manifest_dir):
    (manifest_dir / "llm.yaml").write_text(
        "config:\n  llm:\n    model: anthropic:claude-sonnet-4-0\n"
    )
    extra = manifest_dir / "extra.yaml"
    extra.write_text("include: llm.yaml\nconfig:\n  log_level: debug\n")

    data = load(manifest_dir, yaml_file=str(extra))

    assert data["config"]["llm"]["model"] == "anthropic:claude-sonnet-4-0"
    assert data["config"]["log_level"] == "debug"
    assert "include" not in data


def test_including_file_wins_over_included(manifest_dir):
    (manifest_dir / "base.yaml").write_text(
        "config:\n  log_level: warn\n  llm:\n    retries: 5\n"
    )
    top = manifest_dir / "top.yaml"
    top.write_text("include: base.yaml\nconfig:\n  log_level: error\n")

    data = load(manifest_dir, yaml_file=str(top))

    assert data["config"]["log_level"] == "error"
    assert data["config"]["llm"]["retries"] == 5


def test_circular_include(manifest_dir):
    (manifest_dir / "a.yaml").write_text("include: b.yaml\n")
    (manifest_dir / "b.yaml").write_text("include: a.yaml\n")

    with pytest.raises(ValueError, match="Circular include"):
        load(manifest_dir, yaml_file=str(manifest_dir / "a.yaml"))


def test_cli_includes():
    argv = ["gittyup", "merge", "--include", "a.yaml", "--include=b.yaml",
            "--group", "backend"]

    assert cli_includes(argv) == ["a.yaml", "b.yaml"]


def test_cli_include_is_loaded_last(manifest_dir, mock_argv):
    override = manifest_dir / "override.yaml"
    override.write_text("settings:\n  ai_mode: auto\n")
    sys.argv = ["gittyup", "--include", str(override)]

    data = load(manifest_dir)

    assert data["config"]["manifest"]["settings"]["ai_mode"] == "auto"
    # groups from gittyup.yaml survive the deep merge
    assert "backend" in data["config"]["manifest"]["groups"]
