#!/usr/bin/env python3
"""gittyup CLI - promote branches and commits across many repositories."""

import asyncio
import sys

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from gittyup.command.fetch import FetchCommand
from gittyup.command.merge import MergeCommand
from gittyup.command.pick import PickCommand
from gittyup.core.config import State
from gittyup.core.log import logger


class CliState(State):
    """Merge and cherry-pick across a fleet of git repositories.

    Repositories and groups come from the nearest gittyup.yaml
    manifest. Branch aliases (dev, staging, prod) are expanded per
    repository, and conflicts are resolved interactively with optional
    AI assistance.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.llm.model value)
    2. --include files, the nearest gittyup.yaml, the user config
       and the package defaults
    3. .env file for secrets
    4. Environment variables (GITTYUP_CONFIG__LLM__MODEL=value)
    """

    merge: CliSubCommand[MergeCommand]
    pick: CliSubCommand[PickCommand]
    fetch: CliSubCommand[FetchCommand]

    def cli_cmd(self):
        """Dispatch to active subcommand, or show help if none
        provided."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Close the logger (and flush its sinks) on the way out
        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
