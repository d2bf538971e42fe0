"""
Commit history — cursor-paginated fetch of the default branch history.

Walks ``repository.defaultBranchRef.target.history`` page by page with an
adaptive ceiling keyed on auth mode and requested window, pausing between
pages to stay under GitHub's secondary rate limit.
"""
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from gh_insights.config import DEFAULT_CONFIG, InsightsConfig
from gh_insights.ingestion.errors import ErrorClass, classify_error

logger = logging.getLogger(__name__)

# Placeholder GitHub and older clients use for an author with no name.
UNKNOWN_IDENTITY = "Unknown"

COMMIT_HISTORY_QUERY = """
query($owner: String!, $repo: String!, $first: Int!, $after: String, $since: GitTimestamp) {
  repository(owner: $owner, name: $repo) {
    defaultBranchRef {
      target {
        ... on Commit {
          history(first: $first, after: $after, since: $since) {
            pageInfo {
              hasNextPage
              endCursor
            }
            nodes {
              committedDate
              author {
                name
                user {
                  login
                }
              }
              additions
              deletions
              message
            }
          }
        }
      }
    }
  }
}
"""


@dataclass(frozen=True)
class CommitAuthor:
    """Git author as GitHub reports it: display name plus linked account."""

    name: Optional[str]
    login: Optional[str]


@dataclass(frozen=True)
class Identity:
    """A resolved contributor identity (login, or display name fallback)."""

    key: str
    from_login: bool


@dataclass(frozen=True)
class CommitRecord:
    """One commit from the default branch history."""

    committed_at: str       # ISO 8601
    author: CommitAuthor
    additions: int
    deletions: int
    message: str

    @property
    def identity(self) -> Optional[Identity]:
        return resolve_identity(self.author.login, self.author.name)


def resolve_identity(login: Optional[str], name: Optional[str] = None) -> Optional[Identity]:
    """Resolve a contributor key: login, else display name, else None.

    A literal "Unknown" name is GitHub's placeholder and resolves to None as
    well, so such records can never be ranked.
    """
    login = (login or "").strip()
    if login:
        return Identity(key=login, from_login=True)
    name = (name or "").strip()
    if name and name != UNKNOWN_IDENTITY:
        return Identity(key=name, from_login=False)
    return None


def commit_from_node(node: dict) -> CommitRecord:
    """Convert a GraphQL history node into a CommitRecord."""
    author = node.get("author") or {}
    user = author.get("user") or {}
    return CommitRecord(
        committed_at=node.get("committedDate", ""),
        author=CommitAuthor(name=author.get("name"), login=user.get("login")),
        additions=int(node.get("additions") or 0),
        deletions=int(node.get("deletions") or 0),
        message=node.get("message") or "",
    )


def max_commits_for(
    authenticated: bool,
    days: Optional[int],
    config: InsightsConfig = DEFAULT_CONFIG,
) -> int:
    """Return the commit ceiling for an (auth mode, window) pair.

    authenticated:   None → 3000, ≤7 → 500, ≤30 → 2000, ≤365 → 3000, else 5000
    unauthenticated: None → 300,  ≤7 → 200, else 300
    """
    if authenticated:
        table = config.authenticated_caps
        unbounded = config.authenticated_unbounded_cap
        beyond = config.authenticated_long_window_cap
    else:
        table = config.unauthenticated_caps
        unbounded = config.unauthenticated_unbounded_cap
        beyond = config.unauthenticated_long_window_cap

    if days is None:
        return unbounded
    for max_days, cap in table:
        if days <= max_days:
            return cap
    return beyond


def since_timestamp(days: Optional[int], now: Optional[datetime] = None) -> Optional[str]:
    """Return the ISO-8601 window start ``now - days``, or None if unbounded."""
    if days is None:
        return None
    now = now or datetime.now(tz=timezone.utc)
    return (now - timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")


def _fetch_page(
    client,
    variables: dict,
    sleep: Callable[[float], None],
    max_attempts: int,
) -> dict:
    """One history page with its own rate-limit retry (1s, 2s, 4s ...)."""
    for attempt in range(max_attempts):
        try:
            return client.graphql(COMMIT_HISTORY_QUERY, variables)
        except Exception as exc:
            retryable = classify_error(exc) is ErrorClass.RATE_LIMITED
            if not retryable or attempt >= max_attempts - 1:
                raise
            delay = float(2 ** attempt)
            logger.warning(
                "Rate limited on %s/%s history page, retrying in %.0fs",
                variables["owner"], variables["repo"], delay,
            )
            sleep(delay)
    raise AssertionError("unreachable")


def fetch_commit_history(
    client,
    owner: str,
    repo: str,
    days: Optional[int] = 30,
    config: InsightsConfig = DEFAULT_CONFIG,
    sleep: Callable[[float], None] = time.sleep,
    now: Optional[datetime] = None,
) -> list[CommitRecord]:
    """Fetch default-branch commits for owner/repo, newest first.

    Args:
        client: GitHubClient (or any object with ``authenticated`` and
            ``graphql(query, variables)``).
        owner: Repository owner login.
        repo: Repository name.
        days: Look-back window in days; None for the whole history.
        config: InsightsConfig for caps, page size and page delay.
        sleep: Sleep function (injected by tests).
        now: Reference time for the window start (defaults to UTC now).

    Returns:
        Up to max_commits_for(client.authenticated, days) CommitRecords in
        API order, from at most ceil(cap / history_page_size) page
        requests. An empty repository, or an empty page, ends the walk.

    Raises:
        GitHubAPIError: any non-rate-limit failure, or a rate limit that
            outlasted the per-page retries. No partial list is returned.
    """
    max_commits = max_commits_for(client.authenticated, days, config)
    max_requests = math.ceil(max_commits / config.history_page_size)
    since = since_timestamp(days, now)

    commits: list[CommitRecord] = []
    cursor: Optional[str] = None
    has_next_page = True
    request_count = 0

    while has_next_page and len(commits) < max_commits and request_count < max_requests:
        batch_size = min(config.history_page_size, max_commits - len(commits))

        if request_count > 0 and config.page_delay_seconds > 0:
            sleep(config.page_delay_seconds)

        variables = {
            "owner": owner,
            "repo": repo,
            "first": batch_size,
            "after": cursor,
            "since": since,
        }
        data = _fetch_page(client, variables, sleep, config.max_retries)
        request_count += 1

        repository = data.get("repository") or {}
        branch = repository.get("defaultBranchRef") or {}
        history = (branch.get("target") or {}).get("history")
        if not history:
            logger.debug("%s/%s has no default branch history", owner, repo)
            break

        nodes = history.get("nodes") or []
        if not nodes:
            logger.debug("%s/%s: empty history page, stopping", owner, repo)
            break
        commits.extend(commit_from_node(n) for n in nodes[:batch_size])
        page_info = history.get("pageInfo") or {}
        has_next_page = bool(page_info.get("hasNextPage"))
        cursor = page_info.get("endCursor")

        logger.debug(
            "%s/%s: page %d → %d commits (total %d/%d)",
            owner, repo, request_count, len(nodes), len(commits), max_commits,
        )

    logger.info(
        "Fetched %d commits for %s/%s in %d requests (days=%s, cap=%d)",
        len(commits), owner, repo, request_count, days, max_commits,
    )
    return commits
