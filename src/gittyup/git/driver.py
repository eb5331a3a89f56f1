"""Git operations against one working copy."""

from __future__ import annotations

import shlex
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from invoke import Result

from gittyup.core.errors import ConflictParseError, VcsError
from gittyup.core.log import logger
from gittyup.core.result import CherryPickOutcome, CommitInfo, MergeOutcome
from gittyup.core.runner import Runner
from gittyup.git.parser import ConflictedFile

# Field and record separators for `git log --format`
_FS = "\x1f"
_RS = "\x1e"

# Command templates. Arguments are shell-quoted before formatting;
# any entry can be overridden from config.commands.git.
GIT_COMMANDS = {
    "fetch": "git fetch --prune {remote}",
    "checkout": "git checkout {branch}",
    "checkout_new": "git checkout -b {branch}",
    "current_branch": "git rev-parse --abbrev-ref HEAD",
    "rev_parse": "git rev-parse --verify --quiet {ref}",
    "branch_exists": "git show-ref --verify --quiet refs/heads/{branch}",
    "status": "git status --porcelain",
    "merge": "git merge --no-ff --no-edit {source}",
    "merge_abort": "git merge --abort",
    "cherry_pick": "git cherry-pick {commit}",
    "cherry_pick_abort": "git cherry-pick --abort",
    "cherry_pick_continue": "git -c core.editor=true cherry-pick --continue",
    "diff_conflicted_files": "git diff --name-only --diff-filter=U",
    "show_stage": "git show :{stage}:{filepath}",
    "has_stage": "git cat-file -e :{stage}:{filepath}",
    "checkout_side": "git checkout --{side} -- {filepath}",
    "add_file": "git add -- {filepath}",
    "remove_file": "git rm --quiet --force -- {filepath}",
    "add_all": "git add -A",
    "commit": "git commit --no-verify -m {message}",
    "stash_push": "git stash push --include-untracked -m {message}",
    "stash_pop": "git stash pop",
    "push": "git push --set-upstream {remote} {branch}",
    "log": (
        "git log --max-count={max_count} "
        "--format=%H%x1f%aI%x1f%s%x1f%an%x1e {branch}"
    ),
}


class VersionControlDriver(Protocol):
    """Operations the engine and resolution session need from a
    working copy. GitDriver is the real implementation."""

    name: str

    def fetch(self, remote: str = "origin") -> None: ...
    def merge(self, source: str, target: str) -> MergeOutcome: ...
    def cherry_pick(
        self, commits: list[str], target: str
    ) -> CherryPickOutcome: ...
    def stash(self) -> bool: ...
    def stash_restore(self) -> None: ...
    def get_conflicted_files(self) -> list[ConflictedFile]: ...
    def resolve_file(self, path: str, content: str) -> None: ...
    def resolve_use_ours(self, path: str) -> None: ...
    def resolve_use_theirs(self, path: str) -> None: ...
    def commit_resolution(self, message: str) -> str: ...
    def abort_merge(self) -> None: ...
    def cherry_pick_abort(self) -> None: ...
    def cherry_pick_continue(self) -> str: ...
    def create_escalation_branch(self, prefix: str, label: str) -> str: ...
    def preserve_unresolved(self, message: str) -> str: ...
    def push(self, remote: str, branch: str) -> None: ...
    def list_commits(
        self, branch: str, max_count: int = 30
    ) -> list[CommitInfo]: ...


def escalation_timestamp(now: datetime | None = None) -> str:
    """UTC timestamp usable in a branch name: 2024-05-01T09-30-00."""
    now = now or datetime.now(timezone.utc)
    return now.isoformat().replace(":", "-").replace(".", "-")[:19]


class GitDriver:
    """Drives the git executable in one working copy.

    Every command goes through Runner.execute(). A command that fails
    for any reason other than an expected, detected conflict raises
    VcsError; nothing is swallowed here.
    """

    def __init__(
        self,
        path: Path,
        name: str | None = None,
        runner: Runner | None = None,
        commands: dict[str, str] | None = None,
    ):
        """Args:
            path: Working copy root
            name: Repository name used in log messages
            runner: Command runner (a fresh Runner by default)
            commands: Overrides for GIT_COMMANDS templates
        """
        self.path = Path(path)
        self.name = name or self.path.name
        self.runner = runner or Runner()
        self.commands = {**GIT_COMMANDS, **(commands or {})}

    def __repr__(self):
        return f"GitDriver({self.name!r}, {str(self.path)!r})"

    # ------------------------------------------------------------
    # command plumbing
    # ------------------------------------------------------------

    def _command(self, key: str, **args) -> str:
        quoted = {k: shlex.quote(str(v)) for k, v in args.items()}
        return self.commands[key].format(**quoted)

    def _run(self, key: str, check: bool = True, **args) -> Result:
        cmd = self._command(key, **args)
        result = self.runner.execute(cmd, cwd=self.path, check=False)
        if check and result.exited != 0:
            raise VcsError(
                f"{self.name}: `{cmd}` failed",
                command=cmd,
                returncode=result.exited,
                stderr=result.stderr,
            )
        return result

    # ------------------------------------------------------------
    # inspection
    # ------------------------------------------------------------

    def current_branch(self) -> str:
        return self._run("current_branch").stdout.strip()

    def head_commit(self, ref: str = "HEAD") -> str:
        return self._run("rev_parse", ref=ref).stdout.strip()

    def branch_exists(self, branch: str) -> bool:
        return self._run(
            "branch_exists", check=False, branch=branch
        ).exited == 0

    def is_merging(self) -> bool:
        return self._run(
            "rev_parse", check=False, ref="MERGE_HEAD"
        ).exited == 0

    def is_cherry_picking(self) -> bool:
        return self._run(
            "rev_parse", check=False, ref="CHERRY_PICK_HEAD"
        ).exited == 0

    def is_dirty(self) -> bool:
        return bool(self._run("status").stdout.strip())

    def conflicted_paths(self) -> list[str]:
        output = self._run("diff_conflicted_files").stdout.strip()
        return output.splitlines() if output else []

    def list_commits(
        self, branch: str, max_count: int = 30
    ) -> list[CommitInfo]:
        """Most recent commits on branch, newest first."""
        output = self._run(
            "log", branch=branch, max_count=max_count
        ).stdout
        commits = []
        for record in output.split(_RS):
            record = record.strip()
            if not record:
                continue
            sha, date, message, author = record.split(_FS, 3)
            commits.append(CommitInfo(
                id=sha, date=date, message=message, author=author
            ))
        return commits

    # ------------------------------------------------------------
    # network
    # ------------------------------------------------------------

    def fetch(self, remote: str = "origin") -> None:
        with logger.span("git fetch", repo=self.name, remote=remote):
            self._run("fetch", remote=remote)

    def push(self, remote: str, branch: str) -> None:
        with logger.span(
            "git push", repo=self.name, remote=remote, branch=branch
        ):
            self._run("push", remote=remote, branch=branch)

    # ------------------------------------------------------------
    # branch operations
    # ------------------------------------------------------------

    def checkout(self, branch: str) -> None:
        self._run("checkout", branch=branch)

    def merge(self, source: str, target: str) -> MergeOutcome:
        """Check out target and merge source with --no-ff.

        On conflict the working copy is left mid-merge and the
        conflicted paths are returned; any other failure raises.
        """
        self.checkout(target)
        result = self._run("merge", check=False, source=source)
        if result.exited == 0:
            logger.info(f"Merged {source} into {target}", repo=self.name)
            return MergeOutcome(success=True)

        conflicts = self.conflicted_paths()
        if not conflicts:
            raise VcsError(
                f"{self.name}: merge of {source} into {target} failed",
                command=result.command,
                returncode=result.exited,
                stderr=result.stderr or result.stdout,
            )
        logger.info(
            f"Merge of {source} into {target} stopped on "
            f"{len(conflicts)} conflicted file(s)",
            repo=self.name,
            conflicts=conflicts,
        )
        return MergeOutcome(success=False, conflicts=conflicts)

    def cherry_pick(
        self, commits: list[str], target: str
    ) -> CherryPickOutcome:
        """Check out target and apply commits one at a time, in order.

        Stops at the first commit that conflicts and leaves the
        working copy mid-cherry-pick. Later commits are not tried.
        """
        self.checkout(target)
        applied: list[str] = []

        for commit in commits:
            result = self._run("cherry_pick", check=False, commit=commit)
            if result.exited == 0:
                applied.append(commit)
                logger.debug(f"Applied {commit[:7]}", repo=self.name)
                continue

            conflicts = self.conflicted_paths()
            if conflicts:
                logger.info(
                    f"Cherry-pick stopped at {commit[:7]}",
                    repo=self.name,
                    applied=len(applied),
                    conflicts=conflicts,
                )
                return CherryPickOutcome(
                    success=False,
                    applied=applied,
                    failed_at=commit,
                    conflicts=conflicts,
                )

            # No conflict but still failed (empty pick, bad id):
            # drop the half-started pick so the branch stays usable
            if self.is_cherry_picking():
                self._run("cherry_pick_abort", check=False)
            raise VcsError(
                f"{self.name}: cherry-pick of {commit} failed",
                command=result.command,
                returncode=result.exited,
                stderr=result.stderr or result.stdout,
            )

        logger.info(
            f"Cherry-picked {len(applied)} commit(s) onto {target}",
            repo=self.name,
        )
        return CherryPickOutcome(success=True, applied=applied)

    def create_escalation_branch(self, prefix: str, label: str) -> str:
        """Create and check out prefix/label-<timestamp>.

        The current index and working tree (including an unfinished
        merge) move to the new branch; the previous branch's tip is
        not touched.
        """
        base = f"{prefix}/{label}-{escalation_timestamp()}"
        branch = base
        suffix = 2
        while self.branch_exists(branch):
            branch = f"{base}-{suffix}"
            suffix += 1
        self._run("checkout_new", branch=branch)
        logger.info(f"Created escalation branch {branch}", repo=self.name)
        return branch

    # ------------------------------------------------------------
    # stash
    # ------------------------------------------------------------

    def stash(self) -> bool:
        """Stash local changes, untracked files included.

        Returns:
            True if anything was stashed
        """
        if not self.is_dirty():
            return False
        self._run("stash_push", message="gittyup: pre-operation stash")
        logger.debug("Stashed local changes", repo=self.name)
        return True

    def stash_restore(self) -> None:
        self._run("stash_pop")
        logger.debug("Restored stashed changes", repo=self.name)

    # ------------------------------------------------------------
    # conflict inspection and resolution
    # ------------------------------------------------------------

    def _read(self, path: str) -> str | None:
        file_path = self.path / path
        if not file_path.is_file():
            return None
        with open(file_path, encoding="utf-8", newline="") as f:
            return f.read()

    def _stage(self, path: str, stage: int) -> str:
        result = self._run(
            "show_stage", check=False, stage=stage, filepath=path
        )
        return result.stdout if result.exited == 0 else ""

    def get_conflicted_files(self) -> list[ConflictedFile]:
        """Read and parse every conflicted path.

        Files without usable markers on disk (deleted on one side,
        binary, malformed) fall back to the index stages.
        """
        files = []
        for path in self.conflicted_paths():
            conflicted = None
            try:
                content = self._read(path)
                if content is not None:
                    conflicted = ConflictedFile.from_content(path, content)
            except (ConflictParseError, UnicodeDecodeError) as e:
                logger.warn(
                    f"Could not parse conflict markers in {path}",
                    repo=self.name,
                    error=str(e),
                )
            if conflicted is None or not conflicted.hunks:
                conflicted = ConflictedFile(
                    path=path,
                    base=self._stage(path, 1),
                    ours=self._stage(path, 2),
                    theirs=self._stage(path, 3),
                )
            files.append(conflicted)
        return files

    def resolve_file(self, path: str, content: str) -> None:
        file_path = self.path / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        self._run("add_file", filepath=path)
        logger.debug(f"Staged resolution for {path}", repo=self.name)

    def _take_side(self, path: str, side: str, stage: int) -> None:
        """Stage one side's version; a side that deleted the file
        resolves to the deletion."""
        has_side = self._run(
            "has_stage", check=False, stage=stage, filepath=path
        ).exited == 0
        if not has_side:
            self._run("remove_file", filepath=path)
            logger.debug(
                f"Staged deletion of {path} ({side})", repo=self.name
            )
            return
        self._run("checkout_side", side=side, filepath=path)
        self._run("add_file", filepath=path)

    def resolve_use_ours(self, path: str) -> None:
        self._take_side(path, "ours", 2)

    def resolve_use_theirs(self, path: str) -> None:
        self._take_side(path, "theirs", 3)

    def commit_resolution(self, message: str) -> str:
        """Commit the staged resolution; returns the new commit id."""
        self._run("commit", message=message)
        return self.head_commit()

    def preserve_unresolved(self, message: str) -> str:
        """Stage everything, conflict markers included, and commit."""
        self._run("add_all")
        return self.commit_resolution(message)

    def abort_merge(self) -> None:
        self._run("merge_abort")
        logger.info("Merge aborted", repo=self.name)

    def cherry_pick_abort(self) -> None:
        self._run("cherry_pick_abort")
        logger.info("Cherry-pick aborted", repo=self.name)

    def cherry_pick_continue(self) -> str:
        self._run("cherry_pick_continue")
        return self.head_commit()
