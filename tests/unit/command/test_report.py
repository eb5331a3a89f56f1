"""Tests for command option handling and the result report."""

import asyncio

from gittyup.command.base import report
from gittyup.command.merge import MergeCommand
from gittyup.command.pick import PickCommand
from gittyup.core.result import OperationResult, OperationStatus


def test_report_lists_every_repo(capsys):
    code = report([
        OperationResult(
            repo="api", status=OperationStatus.SUCCESS,
            message="Merged develop → main",
            pr_url="https://github.com/acme/api/pull/3",
        ),
        OperationResult(
            repo="auth", status=OperationStatus.CONFLICT,
            message="1 unresolved",
        ),
    ])

    out = capsys.readouterr().out
    assert code == 0
    assert "api: Merged develop → main" in out
    assert "https://github.com/acme/api/pull/3" in out
    assert "auth: 1 unresolved" in out


def test_report_fails_on_errors(capsys):
    code = report([
        OperationResult(
            repo="api", status=OperationStatus.ERROR, message="boom"
        ),
        OperationResult(
            repo="auth", status=OperationStatus.SKIPPED, message="Aborted"
        ),
    ])

    assert code == 1
    assert "api: boom" in capsys.readouterr().out


def test_scope_prefers_group():
    command = MergeCommand(source="dev", target="main", group="backend",
                           repo="api")

    assert command.scope() == "backend"
    assert command.fetch is True
    assert command.ai is None


def test_merge_without_scope_fails():
    command = MergeCommand(source="dev", target="main")

    assert asyncio.run(command.run_workflow(state=None)) == 1


def test_pick_needs_commits_or_interactive():
    command = PickCommand(group="backend", source="dev", target="prod")

    assert asyncio.run(command.run_workflow(state=None)) == 1
