"""Multi-repository merge and cherry-pick orchestration."""

from __future__ import annotations

from collections.abc import Sequence

from gittyup.core.config import AiMode, ManifestSettings, RepoConfig
from gittyup.core.errors import GittyupError
from gittyup.core.log import logger
from gittyup.core.registry import RepositoryRegistry
from gittyup.core.result import OperationResult, OperationStatus
from gittyup.core.target import CherryPickTarget, MergeTarget, OperationTarget
from gittyup.github.pulls import (
    PullRequestRequest,
    PullRequestService,
    parse_github_owner_repo,
    render_pr_body,
)
from gittyup.session.prompts import Prompter
from gittyup.session.resolution import AiResolve, ConflictResolver
from gittyup.workflow.graph import create_workflow
from gittyup.workflow.nodes.operate import Operate
from gittyup.workflow.state import PromotionState


class OrchestrationEngine:
    """Runs one operation across many repositories, one at a time.

    Per repository: stash, run the Operate → ResolveConflicts → Push
    graph, restore the stash. Any failure in one repository becomes
    that repository's error result and the run moves on; the engine
    itself only raises for misuse (an empty target list).
    """

    def __init__(
        self,
        registry: RepositoryRegistry,
        prompter: Prompter,
        settings: ManifestSettings | None = None,
        ai_resolve: AiResolve | None = None,
        pull_requests: PullRequestService | None = None,
    ):
        self.registry = registry
        self.prompter = prompter
        self.settings = settings or registry.manifest.settings
        self.ai_resolve = ai_resolve
        self.pull_requests = pull_requests
        self.workflow = create_workflow()

    async def execute_merge(
        self,
        targets: Sequence[MergeTarget],
        fetch: bool = True,
        push: bool = False,
        create_pr: bool = False,
        ai_mode: AiMode | None = None,
    ) -> list[OperationResult]:
        return await self._execute(
            targets, fetch=fetch, push=push, create_pr=create_pr,
            ai_mode=ai_mode,
        )

    async def execute_cherry_pick(
        self,
        targets: Sequence[CherryPickTarget],
        fetch: bool = True,
        push: bool = False,
        create_pr: bool = False,
        ai_mode: AiMode | None = None,
    ) -> list[OperationResult]:
        return await self._execute(
            targets, fetch=fetch, push=push, create_pr=create_pr,
            ai_mode=ai_mode,
        )

    async def _execute(
        self,
        targets: Sequence[OperationTarget],
        fetch: bool,
        push: bool,
        create_pr: bool,
        ai_mode: AiMode | None,
    ) -> list[OperationResult]:
        if not targets:
            raise ValueError("No targets to operate on")

        mode = ai_mode or self.settings.ai_mode
        operation = targets[0].operation

        with logger.span(
            f"{operation} across {len(targets)} repo(s)",
            operation=operation,
            ai_mode=mode,
        ):
            if fetch:
                self._fetch(targets)

            results = []
            for target in targets:
                result = await self._run_target(target, push, mode)
                logger.info(
                    f"{result.repo}: {result.status.value}: {result.message}"
                )
                results.append(result)

            if create_pr:
                results = self._attach_prs(results, targets)

        return results

    def _fetch(self, targets: Sequence[OperationTarget]):
        seen = set()
        for target in targets:
            repo = target.repo
            if repo.name in seen:
                continue
            seen.add(repo.name)
            try:
                self.registry.driver_for(repo).fetch(repo.remote)
            except GittyupError as e:
                logger.warn(f"Fetch failed for {repo.name}", error=str(e))

    async def _run_target(
        self, target: OperationTarget, push: bool, ai_mode: str
    ) -> OperationResult:
        repo = target.repo
        logger.info(
            f"{target.operation} {target.source_branch} → "
            f"{target.target_branch} in {repo.name}"
        )

        stashed = False
        driver = None
        try:
            driver = self.registry.driver_for(repo)
            stashed = driver.stash()

            state = PromotionState(
                target=target,
                driver=driver,
                resolver=ConflictResolver(
                    driver,
                    self.prompter,
                    ai_resolve=self.ai_resolve,
                    ai_mode=ai_mode,
                    branch_prefix=self.settings.conflict_branch_prefix,
                ),
                push=push,
            )
            async with self.workflow.iter(Operate(), state=state) as run:
                async for node in run:
                    logger.debug(
                        f"{repo.name}: {type(node).__name__}"
                    )
            return run.result.output

        except GittyupError as e:
            logger.error(f"{repo.name}: {e}")
            return OperationResult(
                repo=repo.name,
                status=OperationStatus.ERROR,
                message=str(e),
            )

        except Exception as e:
            logger.error(
                f"{repo.name}: unexpected failure",
                error=f"{type(e).__name__}: {e}",
            )
            return OperationResult(
                repo=repo.name,
                status=OperationStatus.ERROR,
                message=f"{type(e).__name__}: {e}",
            )

        finally:
            if stashed:
                try:
                    driver.stash_restore()
                except GittyupError as e:
                    logger.warn(
                        f"Could not restore stashed changes in "
                        f"{repo.name}; they remain in `git stash list`",
                        error=str(e),
                    )

    def _attach_prs(
        self,
        results: list[OperationResult],
        targets: Sequence[OperationTarget],
    ) -> list[OperationResult]:
        """Open a pull request for each success/conflict result whose
        repository has a remote URL. Failures only log."""
        if self.pull_requests is None:
            logger.warn("No pull request service configured")
            return results

        by_repo = {t.repo.name: t for t in targets}
        attached = []
        for result in results:
            target = by_repo.get(result.repo)
            if (
                target is None
                or not target.repo.url
                or result.status not in (
                    OperationStatus.SUCCESS, OperationStatus.CONFLICT
                )
            ):
                attached.append(result)
                continue
            attached.append(self._create_pr(result, target))
        return attached

    def _create_pr(
        self, result: OperationResult, target: OperationTarget
    ) -> OperationResult:
        try:
            owner, name = parse_github_owner_repo(target.repo.url)
        except ValueError as e:
            logger.warn(f"Could not create PR for {result.repo}", error=str(e))
            return result

        session = result.session
        head = (
            session.escalation_branch
            if session is not None and session.escalation_branch
            else target.target_branch
        )
        commit_count = (
            len(target.commits)
            if isinstance(target, CherryPickTarget) else "N/A"
        )
        body = render_pr_body(
            self.settings.pr_template,
            operation=target.operation,
            source_branch=target.source_branch,
            target_branch=target.target_branch,
            repo_name=target.repo.name,
            commit_count=commit_count,
        )
        try:
            pr = self.pull_requests.create_pr(PullRequestRequest(
                owner=owner,
                repo=name,
                title=(
                    f"[gittyup] {target.operation}: "
                    f"{target.source_branch} → {target.target_branch}"
                ),
                body=body,
                head=head,
                base=target.target_branch,
                labels=list(self.settings.pr_labels),
            ))
        except Exception as e:
            logger.warn(
                f"Could not create PR for {result.repo}",
                error=f"{type(e).__name__}: {e}",
            )
            return result
        if pr.status == "error" or not pr.url:
            logger.warn(
                f"Could not create PR for {result.repo}", error=pr.message
            )
            return result

        logger.info(f"{result.repo}: PR {pr.status} {pr.url}")
        return result.model_copy(update={"pr_url": pr.url})

    def select_commits(
        self, repo: RepoConfig, source_branch: str, max_count: int = 30
    ) -> list[str]:
        """Let the operator pick commits from source_branch.

        Returned in the order they should be applied (oldest first).
        """
        commits = self.registry.driver_for(repo).list_commits(
            source_branch, max_count
        )
        if not commits:
            logger.warn(f"No commits found on {source_branch}", repo=repo.name)
            return []

        picked = set(self.prompter.select_many(
            f"Select commits to cherry-pick from {source_branch}:",
            [
                (
                    c.id,
                    f"{c.short_id} {c.message[:60]} ({c.author}, {c.date})",
                )
                for c in commits
            ],
        ))
        return [c.id for c in reversed(commits) if c.id in picked]
