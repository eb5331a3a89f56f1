"""Interactive conflict resolution for one repository.

ConflictResolutionSession is the record: which files conflicted,
which are resolved, and where the session ended up. ConflictResolver
drives it, file by file, through the operator's chosen strategies.

Session states:

    pending -> in-progress -> resolved
                           -> escalated
                           -> pending      (abort: operation undone)
                           (in-progress)   (leave: partial, terminal)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

from gittyup.core.log import logger
from gittyup.git.parser import ConflictedFile
from gittyup.session.prompts import Prompter

if TYPE_CHECKING:
    from gittyup.git.driver import VersionControlDriver

AiResolve = Callable[
    [ConflictedFile, Literal["auto", "suggest"]], Awaitable[str | None]
]

PREVIEW_LINES = 8


class SessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    ESCALATED = "escalated"


class ConflictResolutionSession(BaseModel):
    """Conflict state of one (repository, operation) pair.

    Only the transition methods below change status, and each checks
    that it is called from a state that allows it.
    """

    repo: str
    operation: Literal["merge", "cherry-pick"]
    source_branch: str
    target_branch: str
    files: list[ConflictedFile] = Field(default_factory=list)
    resolved_files: list[str] = Field(default_factory=list)
    escalation_branch: str | None = None
    status: SessionStatus = SessionStatus.PENDING
    commit: str | None = Field(
        default=None, description="Commit that recorded the resolution"
    )

    @property
    def unresolved(self) -> list[ConflictedFile]:
        return [f for f in self.files if f.path not in self.resolved_files]

    @property
    def is_complete(self) -> bool:
        return not self.unresolved

    def _require(self, *allowed: SessionStatus):
        if self.status not in allowed:
            raise ValueError(
                f"Session for {self.repo} is {self.status.value}; "
                f"expected {', '.join(s.value for s in allowed)}"
            )

    def begin(self):
        self._require(SessionStatus.PENDING)
        self.status = SessionStatus.IN_PROGRESS

    def mark_resolved(self, path: str, content: str | None = None):
        self._require(SessionStatus.IN_PROGRESS)
        for file in self.files:
            if file.path == path:
                file.resolved = content
                break
        else:
            raise ValueError(f"{path} is not conflicted in {self.repo}")
        if path not in self.resolved_files:
            self.resolved_files.append(path)

    def complete(self):
        self._require(SessionStatus.IN_PROGRESS)
        if not self.is_complete:
            raise ValueError(
                f"{len(self.unresolved)} file(s) still unresolved"
            )
        self.status = SessionStatus.RESOLVED

    def escalate(self, branch: str):
        self._require(SessionStatus.IN_PROGRESS)
        self.escalation_branch = branch
        self.status = SessionStatus.ESCALATED

    def reset(self):
        """Back to pending after the operation was aborted."""
        self._require(SessionStatus.IN_PROGRESS)
        self.resolved_files = []
        for file in self.files:
            file.resolved = None
        self.status = SessionStatus.PENDING


class ConflictResolver:
    """Walks the operator through every conflicted file.

    Each file gets a strategy menu that is re-presented (never
    recursed into) after a non-terminal choice: viewing the full
    conflict, an AI call that produced nothing, a rejected suggestion
    or an empty edit.
    """

    def __init__(
        self,
        driver: VersionControlDriver,
        prompter: Prompter,
        ai_resolve: AiResolve | None = None,
        ai_mode: str = "suggest",
        branch_prefix: str = "conflict-resolution",
    ):
        self.driver = driver
        self.prompter = prompter
        self.ai_resolve = ai_resolve
        self.ai_mode = ai_mode
        self.branch_prefix = branch_prefix

    @property
    def ai_enabled(self) -> bool:
        return (
            self.ai_resolve is not None
            and self.ai_mode in ("auto", "suggest")
        )

    def start(
        self,
        operation: Literal["merge", "cherry-pick"],
        source_branch: str,
        target_branch: str,
    ) -> ConflictResolutionSession:
        return ConflictResolutionSession(
            repo=self.driver.name,
            operation=operation,
            source_branch=source_branch,
            target_branch=target_branch,
            files=self.driver.get_conflicted_files(),
        )

    async def run(
        self, session: ConflictResolutionSession
    ) -> ConflictResolutionSession:
        """Resolve until every file is done or the operator chooses
        to abort, leave or escalate."""
        session.begin()
        logger.info(
            f"Resolving {len(session.files)} conflicted file(s)",
            repo=session.repo,
            operation=session.operation,
            ai_mode=self.ai_mode,
        )

        while True:
            pending = session.unresolved
            for i, file in enumerate(pending, 1):
                self.prompter.show(
                    f"--- File {i}/{len(pending)}: {file.path} ---"
                )
                content = await self.resolve_file(file)
                if content is None:
                    logger.info(f"Skipped {file.path}", repo=session.repo)
                    continue
                session.mark_resolved(file.path, content)
                logger.info(f"Resolved {file.path}", repo=session.repo)

            if session.is_complete:
                session.complete()
                if self.prompter.confirm(
                    "All conflicts resolved. Commit the resolution?",
                    default=True,
                ):
                    session.commit = self._commit(session)
                return session

            action = self.prompter.select(
                f"{len(session.unresolved)} file(s) still unresolved. "
                f"How would you like to proceed?",
                [
                    ("retry", "Continue resolving remaining files"),
                    ("abort", "Abort and roll back"),
                    ("leave", "Leave as-is (partial resolution)"),
                    ("escalate", "Escalate: create a branch for later"),
                ],
            )
            if action == "retry":
                continue
            if action == "abort":
                self._abort(session)
            elif action == "escalate":
                self._escalate(session)
            return session

    async def resolve_file(self, file: ConflictedFile) -> str | None:
        """Apply one strategy to file.

        Returns:
            The staged content, or None if the file was skipped
        """
        self.prompter.show(self._preview(file))

        while True:
            action = self.prompter.select(
                f"How to resolve {file.path}?", self._choices()
            )

            if action == "ours":
                self.driver.resolve_use_ours(file.path)
                return file.ours

            if action == "theirs":
                self.driver.resolve_use_theirs(file.path)
                return file.theirs

            if action == "skip":
                return None

            if action == "view-full":
                self.prompter.show(self._full_conflict(file))
                continue

            start_from = file.ours
            if action == "ai-auto":
                resolved = await self._ask_ai(file, "auto")
                if resolved is None:
                    self.prompter.show(
                        "AI could not resolve this file; choose another "
                        "strategy."
                    )
                    continue
                self.driver.resolve_file(file.path, resolved)
                return resolved

            if action == "ai-suggest":
                suggestion = await self._ask_ai(file, "suggest")
                if suggestion is None:
                    self.prompter.show("AI did not return a suggestion.")
                    continue
                self.prompter.show(
                    "-- AI suggested resolution --\n"
                    f"{suggestion}\n"
                    "-- end suggestion --"
                )
                verdict = self.prompter.select("Accept this suggestion?", [
                    ("accept", "Accept as-is"),
                    ("edit", "Accept and edit"),
                    ("reject", "Reject"),
                ])
                if verdict == "accept":
                    self.driver.resolve_file(file.path, suggestion)
                    return suggestion
                if verdict == "reject":
                    continue
                start_from = suggestion

            # manual edit, or editing on top of a suggestion
            edited = self.prompter.edit(
                start_from, extension=_extension(file.path)
            )
            if not edited or not edited.strip():
                self.prompter.show("Empty edit; nothing staged.")
                continue
            self.driver.resolve_file(file.path, edited)
            return edited

    async def _ask_ai(self, file: ConflictedFile, mode) -> str | None:
        if self.ai_resolve is None:
            return None
        try:
            return await self.ai_resolve(file, mode) or None
        except Exception as e:
            logger.warn(
                f"AI resolution failed for {file.path}",
                mode=mode,
                error=str(e),
            )
            return None

    def _choices(self) -> list[tuple[str, str]]:
        choices = []
        if self.ai_enabled:
            choices += [
                ("ai-auto", "AI auto-resolve (merge both sides)"),
                ("ai-suggest", "AI suggest (propose, you approve)"),
            ]
        choices += [
            ("ours", "Keep OURS (current branch version)"),
            ("theirs", "Keep THEIRS (incoming version)"),
            ("manual", "Manual edit"),
            ("view-full", "View full conflict"),
            ("skip", "Skip this file"),
        ]
        return choices

    def _commit(self, session: ConflictResolutionSession) -> str:
        if session.operation == "cherry-pick":
            commit = self.driver.cherry_pick_continue()
        else:
            commit = self.driver.commit_resolution(
                f"resolve: merge {session.source_branch} → "
                f"{session.target_branch} via gittyup"
            )
        logger.info(f"Committed resolution {commit[:8]}", repo=session.repo)
        return commit

    def _abort(self, session: ConflictResolutionSession):
        if session.operation == "merge":
            self.driver.abort_merge()
        else:
            self.driver.cherry_pick_abort()
        session.reset()

    def _escalate(self, session: ConflictResolutionSession):
        branch = self.driver.create_escalation_branch(
            self.branch_prefix, f"{session.repo}-{session.target_branch}"
        )
        self.driver.preserve_unresolved(
            f"gittyup: unresolved {session.operation} "
            f"{session.source_branch} → {session.target_branch}"
        )
        session.escalate(branch)
        logger.info(f"Escalated to {branch}", repo=session.repo)

    def _preview(self, file: ConflictedFile) -> str:
        lines = []
        for title, text in (
            ("<<<< OURS (current branch)", file.ours),
            (">>>> THEIRS (incoming)", file.theirs),
        ):
            body = text.splitlines()
            lines.append(f"  {title}:")
            lines += [f"    {line}" for line in body[:PREVIEW_LINES]]
            if len(body) > PREVIEW_LINES:
                lines.append(
                    f"    ... ({len(body) - PREVIEW_LINES} more lines)"
                )
        return "\n".join(lines)

    def _full_conflict(self, file: ConflictedFile) -> str:
        return "\n".join([
            "==== OURS (full) ====",
            file.ours,
            "==== BASE ====",
            file.base or "(no base available)",
            "==== THEIRS (full) ====",
            file.theirs,
        ])


def _extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    return "." + name.rsplit(".", 1)[-1] if "." in name else ".txt"
