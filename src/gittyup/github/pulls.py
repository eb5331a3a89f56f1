"""Pull request creation through the gh CLI."""

from __future__ import annotations

import json
import re
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from gittyup.core.log import logger
from gittyup.core.runner import Runner, quote_command

_GITHUB_URL = re.compile(r"github\.com[/:]([^/]+)/([^/]+?)(?:\.git)?/?$")


class PullRequestRequest(BaseModel):
    owner: str
    repo: str
    title: str
    body: str
    head: str
    base: str
    labels: list[str] = Field(default_factory=list)
    draft: bool = False


class PullRequestResult(BaseModel):
    url: str = ""
    status: Literal["created", "updated", "error"]
    number: int = 0
    message: str | None = None


class PullRequestService(Protocol):
    def create_pr(self, request: PullRequestRequest) -> PullRequestResult:
        """Create (or find) a pull request. Never raises for API or
        tool failures; those come back with status "error"."""
        ...


def parse_github_owner_repo(url: str) -> tuple[str, str]:
    """Owner and repository name from an https or ssh GitHub URL.

    Raises:
        ValueError: If url is not a GitHub repository URL
    """
    match = _GITHUB_URL.search(url.strip())
    if not match:
        raise ValueError(f"Could not parse GitHub owner/repo from URL: {url}")
    return match.group(1), match.group(2)


def render_pr_body(template: str, **values) -> str:
    """Replace {{name}} placeholders; unknown ones are left as is."""
    body = template
    for name, value in values.items():
        body = body.replace("{{" + name + "}}", str(value))
    return body


class GhPullRequests:
    """PullRequestService backed by `gh pr create`."""

    def __init__(self, runner: Runner | None = None, gh: str = "gh"):
        self.runner = runner or Runner()
        self.gh = gh

    def create_pr(self, request: PullRequestRequest) -> PullRequestResult:
        slug = f"{request.owner}/{request.repo}"
        parts = [
            self.gh, "pr", "create",
            "--repo", slug,
            "--head", request.head,
            "--base", request.base,
            "--title", request.title,
            "--body", request.body,
        ]
        for label in request.labels:
            parts += ["--label", label]
        if request.draft:
            parts.append("--draft")

        result = self.runner.execute(quote_command(parts), check=False)
        output = result.stdout.strip()
        if result.exited == 0 and output:
            url = output.splitlines()[-1]
            logger.info(f"Created pull request {url}", repo=slug)
            return PullRequestResult(
                url=url, status="created", number=_pr_number(url)
            )

        if "already exists" in result.stderr:
            existing = self._find_existing(slug, request.head)
            if existing is not None:
                return existing

        if result.exited == 0:
            message = "gh printed no pull request URL"
        else:
            message = result.stderr.strip() or f"gh exited {result.exited}"
        logger.warn(f"Pull request creation failed for {slug}", error=message)
        return PullRequestResult(status="error", message=message)

    def _find_existing(self, slug: str, head: str) -> PullRequestResult | None:
        result = self.runner.execute(
            quote_command([
                self.gh, "pr", "view", head,
                "--repo", slug,
                "--json", "number,url",
            ]),
            check=False,
        )
        if result.exited != 0:
            return None
        try:
            data = json.loads(result.stdout)
            url, number = data["url"], data["number"]
        except (ValueError, TypeError, KeyError) as e:
            logger.warn(
                f"Unreadable `gh pr view` output for {slug}", error=str(e)
            )
            return None
        return PullRequestResult(
            url=url,
            status="updated",
            number=number,
            message="PR already exists",
        )


def _pr_number(url: str) -> int:
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else 0
