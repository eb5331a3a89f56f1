"""Application state, configuration and the repository manifest."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from gittyup.core.base import BaseConfig, BaseState
from gittyup.core.log import Logger
from gittyup.core.yaml_settings import YamlWithIncludesSettingsSource

# Modules available for template substitution in YAML files
# Usage: {platformdirs.user_log_dir}, {os.getcwd}, {Path.cwd}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

AiMode = Literal['auto', 'suggest', 'manual']

DEFAULT_BRANCHES = {
    'dev': 'develop',
    'staging': 'staging',
    'prod': 'main',
}

DEFAULT_PR_TEMPLATE = "\n".join([
    "## {{operation}} from `{{source_branch}}` → `{{target_branch}}`",
    "",
    "**Repo:** {{repo_name}}",
    "**Operation:** {{operation}}",
    "**Commits:** {{commit_count}}",
    "",
    "---",
    "_Created by gittyup_",
])

# ============================================================
# MANIFEST MODELS (repositories, groups, settings)
# ============================================================

class RepoConfig(BaseConfig):
    """One repository in the manifest.

    Read-only for the duration of a run. ``branches`` maps logical
    names (dev, staging, prod) to the branch names this particular
    repository actually uses.
    """

    name: str = Field(description="Unique repository name")
    path: str = Field(
        description="Working copy location, absolute or relative to "
        "the manifest workspace"
    )
    remote: str = Field(default="origin", description="Remote to use")
    url: str | None = Field(
        default=None,
        description="Remote URL; enables pull request features"
    )
    branches: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_BRANCHES),
        description="Branch alias map, e.g. {dev: develop}"
    )
    tags: list[str] = Field(default_factory=list)

    def resolve_branch(self, name: str) -> str:
        """Expand a branch alias; unknown names pass through."""
        return self.branches.get(name, name)


class GroupConfig(BaseConfig):
    """Named, ordered set of repositories."""

    repos: list[RepoConfig] = Field(default_factory=list)
    description: str | None = None


class ManifestSettings(BaseConfig):
    """Manifest-wide behaviour."""

    ai_mode: AiMode = Field(
        default="suggest",
        description="AI assistance during conflict resolution: "
        "auto, suggest or manual (no AI)"
    )
    conflict_branch_prefix: str = Field(
        default="conflict-resolution",
        description="Prefix for escalation branches"
    )
    pr_template: str = Field(
        default=DEFAULT_PR_TEMPLATE,
        description="Pull request body; {{operation}}, "
        "{{source_branch}}, {{target_branch}}, {{repo_name}} and "
        "{{commit_count}} are replaced"
    )
    pr_labels: list[str] = Field(default_factory=lambda: ["gittyup"])


class Manifest(BaseConfig):
    """The gittyup.yaml manifest: workspace root, groups, settings."""

    workspace: str = Field(
        default=".",
        description="Root that relative repository paths resolve "
        "against; relative to the manifest file itself"
    )
    groups: dict[str, GroupConfig] = Field(default_factory=dict)
    settings: ManifestSettings = Field(default_factory=ManifestSettings)

    @model_validator(mode='after')
    def _unique_repo_names(self) -> 'Manifest':
        seen: dict[str, str] = {}
        for group_name, group in self.groups.items():
            for repo in group.repos:
                if repo.name in seen:
                    raise ValueError(
                        f'Repo "{repo.name}" appears in group '
                        f'"{seen[repo.name]}" and "{group_name}"; '
                        f'repo names must be unique'
                    )
                seen[repo.name] = group_name
        return self

    def get_group(self, name: str) -> GroupConfig | None:
        return self.groups.get(name)

    def all_repos(self) -> list[tuple[str, RepoConfig]]:
        """Every repository as (group name, repo), manifest order."""
        return [
            (group_name, repo)
            for group_name, group in self.groups.items()
            for repo in group.repos
        ]

    def resolve_repo_path(
        self, repo_path: str, manifest_dir: Path | None = None
    ) -> Path:
        """Resolve a repository path against the workspace root."""
        path = Path(repo_path).expanduser()
        if path.is_absolute():
            return path
        workspace = Path(self.workspace).expanduser()
        if not workspace.is_absolute():
            workspace = (manifest_dir or Path.cwd()) / workspace
        return (workspace / path).resolve()


# ============================================================
# CONFIG MODELS (loaded from YAML/env/CLI)
# ============================================================

class LLMConfig(BaseConfig):
    """LLM provider and model selection for AI conflict resolution."""

    model: str = Field(
        default="openai:gpt-4o",
        description=(
            "pydantic-ai model string, 'provider:model' "
            "(e.g., openai:gpt-4o, anthropic:claude-sonnet-4-0)"
        )
    )
    api_key: str | None = Field(
        default=None,
        description=(
            "API key; when unset the provider reads its own "
            "environment variable (OPENAI_API_KEY, ...)"
        )
    )
    base_url: str | None = Field(
        default=None,
        description="Base URL for OpenAI-compatible endpoints"
    )
    retries: int = Field(default=2, description="Agent retries")


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI."""

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance"
    )
    manifest: Manifest = Field(
        default_factory=Manifest,
        description="Repositories, groups and manifest settings"
    )
    manifest_dir: Path | None = Field(
        default=None,
        description="Directory of the gittyup.yaml that was loaded"
    )
    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM provider and model settings"
    )
    log_level: str = Field(
        default="info",
        alias="log-level",
        description="Console log level: 'trace', 'debug', 'info', "
        "'warn', 'error', 'fatal'",
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "gittyup"
        ),
        description="Root directory for log files "
        "(supports {platformdirs.*} templates)",
    )
    prompts: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="LLM prompt templates, keyed by component",
    )
    commands: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Command template overrides, keyed by tool "
        "(e.g. commands.git.fetch)",
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Config':
        """Configure the global logger once config has loaded."""
        from gittyup.core.log import setup_logger

        if self.logger is None:
            self.logger = Logger(level=self.log_level)

        setup_logger(
            log_root=self.log_root,
            run_name="gittyup",
            level=self.logger.level,
            console=self.logger.console,
            otlp=self.logger.otlp,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )
        return self

    def close(self):
        """Close the global logger, then the remaining children."""
        from gittyup.core.log import logger
        if logger is not None:
            logger.close()
        super().close()


# ============================================================
# RUNTIME STATE MODELS (mutable during execution)
# ============================================================

class RunState(BaseState):
    """State of the current merge / cherry-pick / fetch command."""

    operation: str | None = Field(
        default=None,
        description="merge, cherry-pick or fetch"
    )
    status: str = Field(
        default="pending",
        description="pending, running, complete",
    )
    results: list = Field(
        default_factory=list,
        description="OperationResult or FetchResult per repository",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Runtime(BaseModel):
    """Container for runtime state sections."""

    run: RunState = Field(default_factory=RunState)


# ============================================================
# STATE (config + runtime combined)
# ============================================================

class State(BaseSettings):
    """Configuration plus runtime state; what every command receives.

    Sources, highest priority first: init arguments, YAML (package
    defaults < user config < nearest gittyup.yaml < --include files),
    .env, environment (GITTYUP_CONFIG__LLM__MODEL=...), file secrets.
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)"
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state (mutates during execution)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to merge. Use --include on the CLI "
            "or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file="gittyup.yaml",
        env_file=".env",
        env_prefix="GITTYUP_",
        env_nested_delimiter="__",
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore'
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> "State":
        """Replace {config.*} and {platformdirs.*} templates in every
        string, Path, dict value and list item of the state."""
        self._substitute_recursive(self)
        return self

    def _substitute_recursive(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for field_name in obj.__class__.model_fields:
                value = getattr(obj, field_name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i in range(len(obj)):
                obj[i] = self._substitute_value(obj[i])

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        elif isinstance(value, Path):
            return Path(self._substitute_string(str(value)))
        elif isinstance(value, (BaseModel, dict, list)):
            self._substitute_recursive(value)
            return value
        return value

    def _substitute_string(self, value: str) -> str:
        """Replace {field.path} references with their values.

        Unresolvable references are left untouched, which keeps
        runtime placeholders such as {run_name} and the pull request
        template's {{repo_name}} intact.

        Examples:
            "{config.log_root}/runs" → "/home/user/.local/state/gittyup/runs"
        """
        def replace_template(match):
            parts = match.group(1).split(".")

            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                parts = parts[1:]
            else:
                obj = self

            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    obj = obj('gittyup', appauthor=False)
                return str(obj)
            except (AttributeError, TypeError):
                return match.group(0)

        return re.sub(r'\{([a-z._]+)\}', replace_template, value)


__all__ = [
    "State",
    "Config",
    "Manifest",
    "ManifestSettings",
    "GroupConfig",
    "RepoConfig",
    "LLMConfig",
    "AiMode",
    "BaseConfig",
    "BaseState",
]
