"""Options and helpers shared by the merge and pick commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click
from pydantic import BaseModel, Field

from gittyup.core.config import AiMode
from gittyup.core.log import logger
from gittyup.core.registry import RepositoryRegistry
from gittyup.core.result import OperationResult, OperationStatus
from gittyup.github.pulls import GhPullRequests
from gittyup.model.resolver import AiResolver
from gittyup.session.prompts import Prompter
from gittyup.workflow.orchestrator import OrchestrationEngine

if TYPE_CHECKING:
    from gittyup.core.config import State

STATUS_COLORS = {
    OperationStatus.SUCCESS: "green",
    OperationStatus.CONFLICT: "yellow",
    OperationStatus.ERROR: "red",
    OperationStatus.SKIPPED: "bright_black",
}


class OperationCommand(BaseModel):
    """Scope and behaviour options common to merge and pick."""

    group: str | None = Field(default=None, description="Target group")
    repo: str | None = Field(default=None, description="Target single repo")
    ai: AiMode | None = Field(
        default=None,
        description="AI mode for this run (default: manifest ai_mode)",
    )
    push: bool = Field(default=False, description="Push when done")
    pr: bool = Field(default=False, description="Create pull requests")
    fetch: bool = Field(
        default=True, description="Fetch remotes before operating"
    )
    yes: bool = Field(
        default=False, description="Do not ask before executing the plan"
    )

    def scope(self) -> str | None:
        return self.group or self.repo

    def build_engine(
        self, state: State, registry: RepositoryRegistry, prompter: Prompter
    ) -> OrchestrationEngine:
        settings = state.config.manifest.settings
        mode = self.ai or settings.ai_mode
        ai_resolve = None
        if mode != "manual":
            ai_resolve = AiResolver(
                state.config.llm,
                prompts=state.config.prompts.get("resolver"),
            )
        return OrchestrationEngine(
            registry,
            prompter,
            settings=settings,
            ai_resolve=ai_resolve,
            pull_requests=GhPullRequests() if self.pr else None,
        )


def report(results: list[OperationResult]) -> int:
    """Print one line per repository; returns the exit code."""
    click.echo()
    for result in results:
        status = click.style(
            f"{result.status.value:<8}", fg=STATUS_COLORS[result.status]
        )
        line = f"  {status} {result.repo}: {result.message}"
        if result.pr_url:
            line += f"  {result.pr_url}"
        click.echo(line)

    errors = [r for r in results if r.status == OperationStatus.ERROR]
    if errors:
        logger.error(f"{len(errors)}/{len(results)} repo(s) failed")
        return 1
    return 0
