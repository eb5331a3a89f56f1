"""Pick command - cherry-pick commits between branches across repos."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click
from pydantic import Field

from gittyup.command.base import OperationCommand, report
from gittyup.core.errors import GittyupError
from gittyup.core.log import logger
from gittyup.core.registry import RepositoryRegistry
from gittyup.core.target import CherryPickTarget
from gittyup.session.prompts import ClickPrompter

if TYPE_CHECKING:
    from gittyup.core.config import State


class PickCommand(OperationCommand):
    """Cherry-pick commits between branches within repos (promotion).

    Commits come from --commits (the same ids for every repo) or are
    chosen per repository with --interactive.
    """

    source: str | None = Field(
        default=None, description="Source branch (or alias)"
    )
    target: str | None = Field(
        default=None, description="Target branch (or alias)"
    )
    commits: list[str] | None = Field(
        default=None, description="Commit ids to apply, in order"
    )
    interactive: bool = Field(
        default=False, description="Select commits interactively"
    )

    async def run_workflow(self, state: State) -> int:
        """Run cherry-pick workflow.

        Returns:
            Exit code (0=success, 1=failure)
        """
        scope = self.scope()
        if not scope:
            logger.error("Specify --group or --repo")
            return 1
        if not self.source or not self.target:
            logger.error("Specify --source and --target branches")
            return 1
        if not self.commits and not self.interactive:
            logger.error("Specify --commits or use --interactive")
            return 1

        registry = RepositoryRegistry.from_config(state.config)
        prompter = ClickPrompter()
        engine = self.build_engine(state, registry, prompter)

        targets = []
        try:
            for repo in registry.resolve(scope):
                source = repo.resolve_branch(self.source)
                commits = self.commits
                if not commits:
                    click.echo(
                        click.style(f"\nSelect commits for {repo.name}:",
                                    bold=True)
                    )
                    commits = engine.select_commits(repo, source)
                    if not commits:
                        click.echo(f"  Skipping {repo.name}")
                        continue
                targets.append(CherryPickTarget(
                    repo=repo,
                    source_branch=source,
                    target_branch=repo.resolve_branch(self.target),
                    commits=tuple(commits),
                ))
        except GittyupError as e:
            logger.error(str(e))
            return 1

        if not targets:
            logger.warn("No targets configured")
            return 0

        click.echo(click.style("\n  Cherry-Pick Plan:", bold=True))
        for t in targets:
            click.echo(
                f"    {t.repo.name}: {len(t.commits)} commit(s) "
                f"{t.source_branch} → {t.target_branch}"
            )
            for commit in t.commits:
                click.echo(f"      {commit[:8]}")

        if not self.yes and not prompter.confirm(
            f"Proceed with cherry-pick across {len(targets)} repo(s)?",
            default=True,
        ):
            return 0

        state.runtime.run.operation = "cherry-pick"
        state.runtime.run.status = "running"

        results = await engine.execute_cherry_pick(
            targets,
            fetch=self.fetch,
            push=self.push,
            create_pr=self.pr,
            ai_mode=self.ai,
        )

        state.runtime.run.results = results
        state.runtime.run.status = "complete"
        return report(results)
