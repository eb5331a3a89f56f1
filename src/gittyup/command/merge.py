"""Merge command - merge one branch into another across repos."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click
from pydantic import Field
from pydantic_settings import CliPositionalArg

from gittyup.command.base import OperationCommand, report
from gittyup.core.errors import UnknownTarget
from gittyup.core.log import logger
from gittyup.core.registry import RepositoryRegistry
from gittyup.core.target import build_merge_targets
from gittyup.session.prompts import ClickPrompter

if TYPE_CHECKING:
    from gittyup.core.config import State


class MergeCommand(OperationCommand):
    """Merge a branch across repos (dev sync).

    Branch names may be aliases (dev, staging, prod); each repository
    expands them through its own branch map.
    """

    source: CliPositionalArg[str] = Field(
        description="Source branch (or alias)"
    )
    target: CliPositionalArg[str] = Field(
        description="Target branch (or alias)"
    )

    async def run_workflow(self, state: State) -> int:
        """Run merge workflow.

        Args:
            state: State instance with config loaded

        Returns:
            Exit code (0=every repo succeeded or needs attention,
            1=a repo failed or the scope is invalid)
        """
        scope = self.scope()
        if not scope:
            logger.error("Specify --group or --repo")
            return 1

        registry = RepositoryRegistry.from_config(state.config)
        try:
            repos = registry.resolve(scope)
        except UnknownTarget as e:
            logger.error(str(e))
            return 1

        targets = build_merge_targets(repos, self.source, self.target)

        click.echo(click.style("\n  Merge Plan:", bold=True))
        for t in targets:
            click.echo(
                f"    {t.repo.name}: {t.source_branch} → {t.target_branch}"
            )

        prompter = ClickPrompter()
        if not self.yes and not prompter.confirm(
            f"Proceed with merge across {len(targets)} repo(s)?",
            default=True,
        ):
            return 0

        state.runtime.run.operation = "merge"
        state.runtime.run.status = "running"

        engine = self.build_engine(state, registry, prompter)
        results = await engine.execute_merge(
            targets,
            fetch=self.fetch,
            push=self.push,
            create_pr=self.pr,
            ai_mode=self.ai,
        )

        state.runtime.run.results = results
        state.runtime.run.status = "complete"
        return report(results)
