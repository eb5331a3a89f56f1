"""Repository lookup and per-repository driver cache."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from gittyup.core.config import Manifest, RepoConfig
from gittyup.core.errors import GittyupError, PathNotFound, UnknownTarget
from gittyup.core.log import logger
from gittyup.core.result import FetchResult
from gittyup.git.driver import GitDriver, VersionControlDriver

DriverFactory = Callable[[RepoConfig, Path], VersionControlDriver]


def git_driver_factory(commands: dict[str, str] | None = None):
    def factory(repo: RepoConfig, path: Path) -> GitDriver:
        return GitDriver(path, name=repo.name, commands=commands)
    return factory


class RepositoryRegistry:
    """Resolves group and repository names against the manifest.

    Drivers are created on first use and cached by repository name
    for the life of the registry, so a repository missing on this
    machine only matters once something actually touches it.
    """

    def __init__(
        self,
        manifest: Manifest,
        manifest_dir: Path | None = None,
        driver_factory: DriverFactory | None = None,
    ):
        self.manifest = manifest
        self.manifest_dir = manifest_dir
        self.driver_factory = driver_factory or git_driver_factory()
        self._drivers: dict[str, VersionControlDriver] = {}

    @classmethod
    def from_config(cls, config, driver_factory=None) -> RepositoryRegistry:
        return cls(
            config.manifest,
            manifest_dir=config.manifest_dir,
            driver_factory=(
                driver_factory
                or git_driver_factory(config.commands.get("git"))
            ),
        )

    def resolve(self, target: str) -> list[RepoConfig]:
        """Group members in manifest order, or a single repository.

        Group names win over repository names.

        Raises:
            UnknownTarget: If target names neither
        """
        group = self.manifest.get_group(target)
        if group is not None:
            return list(group.repos)
        for _, repo in self.manifest.all_repos():
            if repo.name == target:
                return [repo]
        raise UnknownTarget(target)

    def all_repos(self) -> list[tuple[str, RepoConfig]]:
        return self.manifest.all_repos()

    def path_for(self, repo: RepoConfig) -> Path:
        return self.manifest.resolve_repo_path(repo.path, self.manifest_dir)

    def driver_for(self, repo: RepoConfig) -> VersionControlDriver:
        """Cached driver for repo.

        Raises:
            PathNotFound: If the working copy does not exist
        """
        driver = self._drivers.get(repo.name)
        if driver is not None:
            return driver

        path = self.path_for(repo)
        if not path.exists():
            raise PathNotFound(repo.name, path)

        driver = self.driver_factory(repo, path)
        self._drivers[repo.name] = driver
        logger.debug(f"Created driver for {repo.name}", path=str(path))
        return driver

    def fetch_all(self, target: str | None = None) -> list[FetchResult]:
        """Fetch every repository (or those of target).

        One repository failing never stops the others.
        """
        if target is None:
            repos = [repo for _, repo in self.all_repos()]
        else:
            repos = self.resolve(target)

        results = []
        for repo in repos:
            try:
                self.driver_for(repo).fetch(repo.remote)
            except GittyupError as e:
                logger.warn(f"Fetch failed for {repo.name}", error=str(e))
                results.append(
                    FetchResult(repo=repo.name, success=False, error=str(e))
                )
            else:
                results.append(FetchResult(repo=repo.name, success=True))
        return results
