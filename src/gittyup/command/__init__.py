"""CLI command modules for gittyup."""

from gittyup.command.fetch import FetchCommand
from gittyup.command.merge import MergeCommand
from gittyup.command.pick import PickCommand

__all__ = ["FetchCommand", "MergeCommand", "PickCommand"]
