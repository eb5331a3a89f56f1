"""YAML configuration loading: package defaults, manifest discovery
and include: directives."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from gittyup.core.log import logger

MANIFEST_NAME = "gittyup.yaml"

# Top-level manifest keys; moved under config.manifest on load
MANIFEST_KEYS = ("workspace", "groups", "settings")


def find_manifest(start: Path | None = None) -> Path | None:
    """Return the nearest gittyup.yaml from start upwards, if any."""
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / MANIFEST_NAME
        if candidate.is_file():
            return candidate
    return None


def cli_includes(argv: list[str] | None = None) -> list[str]:
    """Collect --include values before pydantic parses the CLI."""
    argv = sys.argv if argv is None else argv
    includes = []
    i = 1
    while i < len(argv):
        if argv[i] == "--include" and i + 1 < len(argv):
            includes.append(argv[i + 1])
            i += 1
        elif argv[i].startswith("--include="):
            includes.append(argv[i].split("=", 1)[1])
        i += 1
    return includes


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML settings source that layers several files.

    Deep merge order, later wins:
        package defaults < user config < nearest gittyup.yaml
        < explicit yaml_file / --include files.

    Manifest files may be written in manifest shape (top-level
    workspace/groups/settings); those keys are moved under
    config.manifest and config.manifest_dir is set to the directory
    of the file that supplied them.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file=None,
        search_from: Path | None = None,
    ):
        """Args:
            settings_cls: The settings class being initialised
            yaml_file: Extra file(s) loaded with include priority
            search_from: Directory where manifest discovery starts
                (defaults to the current directory)
        """
        self.search_from = search_from
        extra = []
        if yaml_file:
            extra = (
                [yaml_file] if isinstance(yaml_file, (str, os.PathLike))
                else list(yaml_file)
            )
        super().__init__(settings_cls, extra + cli_includes() or None)

    def _read_files(self, files):
        result = {}

        files_to_load = [
            Path(__file__).parent.parent / "defaults" / "default.yaml",
            Path(user_config_dir("gittyup", appauthor=False)) / MANIFEST_NAME,
        ]

        project_manifest = find_manifest(self.search_from)
        if project_manifest is not None:
            files_to_load.append(project_manifest)

        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            files_to_load.extend(Path(f).expanduser() for f in files)

        for file_path in files_to_load:
            if not file_path.is_file():
                logger.debug(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )
                continue
            with logger.span("Configuration loading", file=str(file_path)):
                data = self._load_file_recursive(file_path, set())
                data = self._normalize(data, file_path)
                result = self._deep_merge(result, data)

        return result

    def _normalize(self, data: dict, source: Path) -> dict:
        """Move manifest-shaped keys under config.manifest."""
        manifest = {
            key: data.pop(key) for key in MANIFEST_KEYS if key in data
        }
        if manifest:
            config = data.setdefault("config", {})
            config["manifest"] = self._deep_merge(
                config.get("manifest", {}), manifest
            )
            config.setdefault("manifest_dir", str(source.parent.resolve()))
        return data

    def _load_file_recursive(
        self, filepath: Path, visited: set[Path]
    ) -> dict:
        """Load a YAML file, merging its include: files underneath it.

        Raises:
            ValueError: On circular includes
        """
        filepath = filepath.resolve()
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if "include" in data:
            includes = data.pop("include")
            if isinstance(includes, str):
                includes = [includes]

            for inc in includes:
                inc_path = self._resolve_path(inc, filepath)
                logger.debug(
                    f"Including {inc_path.name}",
                    included_from=str(filepath),
                )
                inc_data = self._load_file_recursive(
                    inc_path, visited.copy()
                )
                data = self._deep_merge(inc_data, data)

        return data

    def _resolve_path(self, include_path: str, relative_to: Path) -> Path:
        path = Path(include_path).expanduser()
        if path.is_absolute():
            return path
        return (relative_to.parent / path).resolve()

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Recursive dict merge; override wins, lists are replaced."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
