"""Tests for RepositoryRegistry."""

import pytest

from fakes import FakeDriver
from gittyup.core.config import GroupConfig, Manifest, RepoConfig
from gittyup.core.errors import PathNotFound, UnknownTarget
from gittyup.core.registry import RepositoryRegistry
from gittyup.git.driver import GitDriver


@pytest.fixture
def manifest():
    return Manifest(
        workspace="repos",
        groups={
            "backend": GroupConfig(repos=[
                RepoConfig(name="api", path="api"),
                RepoConfig(name="auth", path="auth"),
            ]),
            "frontend": GroupConfig(repos=[
                RepoConfig(name="web", path="web"),
            ]),
            # a group that shares its name with a repository
            "web": GroupConfig(repos=[
                RepoConfig(name="web-admin", path="web-admin"),
            ]),
        },
    )


def make_registry(manifest, tmp_path, drivers=None):
    created = []

    def factory(repo, path):
        created.append((repo.name, path))
        return (drivers or {}).get(repo.name) or FakeDriver(repo.name)

    registry = RepositoryRegistry(
        manifest, manifest_dir=tmp_path, driver_factory=factory
    )
    return registry, created


def test_resolve_group_in_order(manifest, tmp_path):
    registry, _ = make_registry(manifest, tmp_path)

    assert [r.name for r in registry.resolve("backend")] == ["api", "auth"]


def test_resolve_single_repo(manifest, tmp_path):
    registry, _ = make_registry(manifest, tmp_path)

    assert [r.name for r in registry.resolve("auth")] == ["auth"]


def test_group_name_wins_over_repo_name(manifest, tmp_path):
    registry, _ = make_registry(manifest, tmp_path)

    assert [r.name for r in registry.resolve("web")] == ["web-admin"]


def test_unknown_target(manifest, tmp_path):
    registry, _ = make_registry(manifest, tmp_path)

    with pytest.raises(UnknownTarget, match='"payments" is not a known'):
        registry.resolve("payments")


def test_path_for_uses_workspace(manifest, tmp_path):
    registry, _ = make_registry(manifest, tmp_path)
    [api] = registry.resolve("api")

    assert registry.path_for(api) == (tmp_path / "repos" / "api").resolve()


def test_driver_for_is_cached(manifest, tmp_path):
    (tmp_path / "repos" / "api").mkdir(parents=True)
    registry, created = make_registry(manifest, tmp_path)
    [api] = registry.resolve("api")

    first = registry.driver_for(api)
    second = registry.driver_for(api)

    assert first is second
    assert created == [("api", (tmp_path / "repos" / "api").resolve())]


def test_driver_for_missing_path(manifest, tmp_path):
    registry, created = make_registry(manifest, tmp_path)
    [api] = registry.resolve("api")

    with pytest.raises(PathNotFound) as e:
        registry.driver_for(api)

    assert e.value.repo == "api"
    assert created == []


def test_default_factory_builds_git_drivers(manifest, tmp_path):
    (tmp_path / "repos" / "web").mkdir(parents=True)
    registry = RepositoryRegistry(manifest, manifest_dir=tmp_path)
    [web] = registry.resolve("frontend")

    driver = registry.driver_for(web)

    assert isinstance(driver, GitDriver)
    assert driver.name == "web"


def test_fetch_all_continues_past_failures(manifest, tmp_path):
    for name in ("api", "auth", "web", "web-admin"):
        (tmp_path / "repos" / name).mkdir(parents=True)
    drivers = {"auth": FakeDriver("auth", fail_on={"fetch"})}
    registry, _ = make_registry(manifest, tmp_path, drivers)

    results = registry.fetch_all()

    assert [(r.repo, r.success) for r in results] == [
        ("api", True), ("auth", False), ("web", True), ("web-admin", True),
    ]
    assert "fetch failed" in results[1].error


def test_fetch_all_for_group(manifest, tmp_path):
    (tmp_path / "repos" / "api").mkdir(parents=True)
    registry, _ = make_registry(manifest, tmp_path)

    results = registry.fetch_all("backend")

    assert [r.repo for r in results] == ["api", "auth"]
    assert results[0].success
    # auth has no working copy
    assert not results[1].success
    assert "Repo path not found" in results[1].error
