"""GitHub integration."""

from gittyup.github.pulls import (
    GhPullRequests,
    PullRequestRequest,
    PullRequestResult,
    PullRequestService,
    parse_github_owner_repo,
    render_pr_body,
)

__all__ = [
    "GhPullRequests",
    "PullRequestRequest",
    "PullRequestResult",
    "PullRequestService",
    "parse_github_owner_repo",
    "render_pr_body",
]
