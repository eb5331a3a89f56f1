"""Fetch command - fetch remotes across repos."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click
from pydantic import BaseModel, Field

from gittyup.core.errors import UnknownTarget
from gittyup.core.log import logger
from gittyup.core.registry import RepositoryRegistry

if TYPE_CHECKING:
    from gittyup.core.config import State


class FetchCommand(BaseModel):
    """Fetch all remotes across repos."""

    group: str | None = Field(
        default=None, description="Only fetch this group (or repo)"
    )

    async def run_workflow(self, state: State) -> int:
        registry = RepositoryRegistry.from_config(state.config)
        state.runtime.run.operation = "fetch"
        try:
            results = registry.fetch_all(self.group)
        except UnknownTarget as e:
            logger.error(str(e))
            return 1

        state.runtime.run.results = results
        state.runtime.run.status = "complete"

        for result in results:
            status = "ok" if result.success else f"failed: {result.error}"
            click.echo(f"  {result.repo}: {status}")

        failed = [r for r in results if not r.success]
        if failed:
            click.echo(
                click.style(
                    f"\n{len(failed)}/{len(results)} failed", fg="yellow"
                )
            )
            return 1
        click.echo(
            click.style(f"\nFetched {len(results)} repos", fg="green")
        )
        return 0
