"""Interactive prompt surface used by the resolution session.

The session only talks to a Prompter; ClickPrompter renders it on the
terminal. Tests substitute a scripted implementation.
"""

from __future__ import annotations

from typing import Protocol

import click


class Prompter(Protocol):
    def select(self, message: str, choices: list[tuple[str, str]]) -> str:
        """Pick one of choices, given as (value, label); returns value."""
        ...

    def select_many(
        self, message: str, choices: list[tuple[str, str]]
    ) -> list[str]:
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        ...

    def edit(self, text: str, extension: str = ".txt") -> str | None:
        """Open text in an editor; None when the edit is cancelled."""
        ...

    def show(self, text: str) -> None:
        ...


class ClickPrompter:
    """Prompter on top of click."""

    def _print_choices(self, choices: list[tuple[str, str]]):
        for i, (_, label) in enumerate(choices, 1):
            click.echo(f"  {i:>2}. {label}")

    def select(self, message: str, choices: list[tuple[str, str]]) -> str:
        click.echo(message)
        self._print_choices(choices)
        index = click.prompt(
            "Choice", type=click.IntRange(1, len(choices)), default=1
        )
        return choices[index - 1][0]

    def select_many(
        self, message: str, choices: list[tuple[str, str]]
    ) -> list[str]:
        click.echo(message)
        self._print_choices(choices)
        raw = click.prompt(
            "Numbers (space or comma separated)", default="", show_default=False
        )
        picked = []
        for token in raw.replace(",", " ").split():
            if token.isdigit() and 1 <= int(token) <= len(choices):
                value = choices[int(token) - 1][0]
                if value not in picked:
                    picked.append(value)
        return picked

    def confirm(self, message: str, default: bool = False) -> bool:
        return click.confirm(message, default=default)

    def edit(self, text: str, extension: str = ".txt") -> str | None:
        return click.edit(text, extension=extension, require_save=True)

    def show(self, text: str) -> None:
        if text.count("\n") > 40:
            click.echo_via_pager(text)
        else:
            click.echo(text)
