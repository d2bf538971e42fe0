"""
Repository-level fetches: metadata, headline stats, languages and the raw
commit / pull request / review streams that feed contributor ranking.

All calls go through the GraphQL endpoint and are wrapped in with_retry().
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from gh_insights.ingestion.client import (
    PUBLIC_RATE_LIMIT,
    RateLimitState,
    update_rate_limit,
    with_retry,
)
from gh_insights.ingestion.commits import CommitRecord, commit_from_node
from gh_insights.ingestion.errors import GitHubAPIError, GitHubNotFoundError
from gh_insights.metrics.contributors import (
    ContributorDetailStat,
    MentionableUser,
    PullRequestRecord,
    aggregate_contributors,
)

logger = logging.getLogger(__name__)

REPOSITORY_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    id
    name
    nameWithOwner
    description
    url
    isPrivate
    primaryLanguage {
      name
      color
    }
    updatedAt
    stargazerCount
    forkCount
  }
}
"""

REPOSITORY_STATS_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    name
    description
    stargazerCount
    forkCount
    watchers { totalCount }
    issues { totalCount }
    pullRequests { totalCount }
    defaultBranchRef {
      target {
        ... on Commit {
          history { totalCount }
        }
      }
    }
  }
}
"""

LANGUAGES_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    languages(first: 10, orderBy: { field: SIZE, direction: DESC }) {
      edges {
        size
        node {
          name
          color
        }
      }
      totalSize
    }
  }
}
"""

CONTRIBUTOR_ACTIVITY_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    mentionableUsers(first: 50) {
      nodes {
        login
        avatarUrl
        name
      }
    }
    defaultBranchRef {
      target {
        ... on Commit {
          history(first: 100) {
            nodes {
              committedDate
              author {
                user {
                  login
                }
                name
              }
              additions
              deletions
              message
            }
          }
        }
      }
    }
    pullRequests(first: 100, states: [MERGED, OPEN]) {
      nodes {
        author {
          login
        }
        merged
        reviews(first: 50) {
          nodes {
            author {
              login
            }
          }
        }
      }
    }
  }
}
"""


@dataclass(frozen=True)
class Repository:
    """Repository metadata."""

    id: str
    name: str
    name_with_owner: str
    description: Optional[str]
    url: str
    is_private: bool
    primary_language: Optional[str]
    primary_language_color: Optional[str]
    updated_at: str
    stargazer_count: int
    fork_count: int


@dataclass(frozen=True)
class RepositoryStats:
    """Headline counters for a repository."""

    name: str
    description: Optional[str]
    stars: int
    forks: int
    watchers: int
    issues: int
    pull_requests: int
    commits: int


@dataclass(frozen=True)
class LanguageStat:
    """One language's share of a repository's code size."""

    name: str
    color: Optional[str]
    size: int
    percentage: float     # 0–100, one decimal


@dataclass(frozen=True)
class ContributorActivity:
    """Raw record streams for contributor ranking."""

    users: list[MentionableUser]
    commits: list[CommitRecord]
    pull_requests: list[PullRequestRecord]


def _total(node: Optional[dict]) -> int:
    return int((node or {}).get("totalCount") or 0)


def get_repository(
    client,
    owner: str,
    repo: str,
    rate_limit_state: RateLimitState = PUBLIC_RATE_LIMIT,
    sleep: Callable[[float], None] = time.sleep,
) -> Repository:
    """Fetch repository metadata.

    In unauthenticated mode the rate-limit snapshot is refreshed afterwards,
    and private repositories are refused.

    Raises:
        GitHubNotFoundError: the repository does not exist (or is hidden).
        GitHubAPIError: private repository without a token, or any fatal error.
    """
    config = client.config
    is_public = not client.authenticated
    data = with_retry(
        lambda: client.graphql(REPOSITORY_QUERY, {"owner": owner, "repo": repo}),
        max_retries=config.max_retries,
        base_delay=config.retry_base_delay_seconds,
        sleep=sleep,
    )

    if is_public:
        update_rate_limit(client, True, rate_limit_state)

    node = data.get("repository")
    if not node:
        raise GitHubNotFoundError(f"Repository not found: {owner}/{repo}")
    if node.get("isPrivate") and is_public:
        raise GitHubAPIError(
            "This is a private repository. Please login to access.", status=403
        )

    language = node.get("primaryLanguage") or {}
    return Repository(
        id=node.get("id", ""),
        name=node.get("name", repo),
        name_with_owner=node.get("nameWithOwner", f"{owner}/{repo}"),
        description=node.get("description"),
        url=node.get("url", ""),
        is_private=bool(node.get("isPrivate")),
        primary_language=language.get("name"),
        primary_language_color=language.get("color"),
        updated_at=node.get("updatedAt", ""),
        stargazer_count=int(node.get("stargazerCount") or 0),
        fork_count=int(node.get("forkCount") or 0),
    )


def get_repository_stats(client, owner: str, repo: str) -> RepositoryStats:
    """Fetch stars, forks, watchers, issue / PR totals and commit count."""
    data = client.graphql(REPOSITORY_STATS_QUERY, {"owner": owner, "repo": repo})
    node = data.get("repository")
    if not node:
        raise GitHubNotFoundError(f"Repository not found: {owner}/{repo}")

    branch = node.get("defaultBranchRef") or {}
    history = (branch.get("target") or {}).get("history")
    return RepositoryStats(
        name=node.get("name", repo),
        description=node.get("description"),
        stars=int(node.get("stargazerCount") or 0),
        forks=int(node.get("forkCount") or 0),
        watchers=_total(node.get("watchers")),
        issues=_total(node.get("issues")),
        pull_requests=_total(node.get("pullRequests")),
        commits=_total(history),
    )


def get_language_stats(
    client,
    owner: str,
    repo: str,
    sleep: Callable[[float], None] = time.sleep,
) -> list[LanguageStat]:
    """Top 10 languages by size with their percentage of the total."""
    config = client.config
    data = with_retry(
        lambda: client.graphql(LANGUAGES_QUERY, {"owner": owner, "repo": repo}),
        max_retries=config.max_retries,
        base_delay=config.retry_base_delay_seconds,
        sleep=sleep,
    )
    node = data.get("repository")
    if not node:
        raise GitHubNotFoundError(f"Repository not found: {owner}/{repo}")

    languages = node.get("languages") or {}
    total_size = int(languages.get("totalSize") or 0)
    stats = []
    for edge in languages.get("edges") or []:
        size = int(edge.get("size") or 0)
        lang = edge.get("node") or {}
        percentage = round(size / total_size * 100, 1) if total_size else 0.0
        stats.append(
            LanguageStat(
                name=lang.get("name", ""),
                color=lang.get("color"),
                size=size,
                percentage=percentage,
            )
        )
    return stats


def fetch_contributor_activity(
    client,
    owner: str,
    repo: str,
    sleep: Callable[[float], None] = time.sleep,
) -> ContributorActivity:
    """Fetch the latest 100 commits, 100 merged/open PRs and their reviews.

    One GraphQL round trip. A repository without a default branch yields an
    empty commit list.
    """
    config = client.config
    data = with_retry(
        lambda: client.graphql(CONTRIBUTOR_ACTIVITY_QUERY, {"owner": owner, "repo": repo}),
        max_retries=config.max_retries,
        base_delay=config.retry_base_delay_seconds,
        sleep=sleep,
    )
    node = data.get("repository")
    if not node:
        raise GitHubNotFoundError(f"Repository not found: {owner}/{repo}")

    users = [
        MentionableUser(login=u["login"], name=u.get("name"), avatar_url=u.get("avatarUrl"))
        for u in (node.get("mentionableUsers") or {}).get("nodes") or []
        if u and u.get("login")
    ]

    branch = node.get("defaultBranchRef") or {}
    history = (branch.get("target") or {}).get("history") or {}
    commits = [commit_from_node(n) for n in history.get("nodes") or []]

    pull_requests = []
    for pr in (node.get("pullRequests") or {}).get("nodes") or []:
        reviews = (pr.get("reviews") or {}).get("nodes") or []
        pull_requests.append(
            PullRequestRecord(
                author=(pr.get("author") or {}).get("login"),
                merged=bool(pr.get("merged")),
                reviewers=tuple((r.get("author") or {}).get("login") for r in reviews),
            )
        )

    logger.debug(
        "%s/%s activity: %d users, %d commits, %d PRs",
        owner, repo, len(users), len(commits), len(pull_requests),
    )
    return ContributorActivity(users=users, commits=commits, pull_requests=pull_requests)


def get_contributor_details(
    client,
    owner: str,
    repo: str,
    sleep: Callable[[float], None] = time.sleep,
) -> list[ContributorDetailStat]:
    """Ranked contributors (commits, lines, PRs, reviews, score, rank)."""
    activity = fetch_contributor_activity(client, owner, repo, sleep=sleep)
    return aggregate_contributors(
        activity.commits,
        activity.pull_requests,
        activity.users,
        config=client.config,
    )
