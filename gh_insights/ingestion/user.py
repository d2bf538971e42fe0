"""
User-level fetches: profile, owned repositories, recent events, PR / issue
counts from the search endpoint and the yearly contribution calendar.

Strict vs lenient:
    get_user_profile, get_user_repositories and get_user_events propagate
    every failure except "user does not exist", which maps to None / [].
    The contribution counters and the calendar are lenient: a rate limit is
    still raised, but any other failure is logged and reported as zeros so
    one flaky search call cannot sink a whole profile page.
"""
import logging
import time
import urllib.parse
from dataclasses import dataclass, field
from typing import Callable, Optional

from gh_insights.ingestion.client import sequential_fetch, with_retry
from gh_insights.ingestion.errors import (
    ErrorClass,
    GitHubAPIError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    classify_error,
)
from gh_insights.metrics.temporal import ContributionDay, calculate_streaks

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = ("User", "Organization")

USER_REPOSITORIES_QUERY = """
query($username: String!, $first: Int!) {
  user(login: $username) {
    repositories(
      first: $first
      privacy: PUBLIC
      orderBy: { field: STARGAZERS, direction: DESC }
      ownerAffiliations: [OWNER]
    ) {
      nodes {
        name
        nameWithOwner
        description
        stargazerCount
        forkCount
        primaryLanguage {
          name
          color
        }
        updatedAt
        isArchived
        isFork
      }
    }
  }
}
"""

CONTRIBUTION_CALENDAR_QUERY = """
query($username: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $username) {
    contributionsCollection(from: $from, to: $to) {
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            contributionCount
            date
          }
        }
      }
    }
  }
}
"""


@dataclass(frozen=True)
class UserProfile:
    """Public GitHub profile."""

    login: str
    avatar_url: str
    name: Optional[str]
    bio: Optional[str]
    company: Optional[str]
    location: Optional[str]
    blog: Optional[str]
    twitter_username: Optional[str]
    followers: int
    following: int
    public_repos: int
    public_gists: int
    created_at: str
    type: str             # "User" | "Organization"


@dataclass(frozen=True)
class UserRepository:
    name: str
    name_with_owner: str
    description: Optional[str]
    stargazer_count: int
    fork_count: int
    primary_language: Optional[str]
    primary_language_color: Optional[str]
    updated_at: str
    is_archived: bool
    is_fork: bool


@dataclass(frozen=True)
class LanguageShare:
    """Number of repositories whose primary language is ``name``."""

    name: str
    color: Optional[str]
    count: int
    percentage: int


@dataclass(frozen=True)
class UserStats:
    """
    Totals over a user's owned public repositories.

    Fields:
        total_stars:        Sum of stargazer counts.
        total_forks:        Sum of fork counts.
        total_repos:        Number of repositories considered.
        language_breakdown: Primary-language counts, most common first.
        top_repositories:   First 10 non-fork, non-archived repositories
                            in the input order (stars descending from the API).
    """

    total_stars: int
    total_forks: int
    total_repos: int
    language_breakdown: list[LanguageShare] = field(default_factory=list)
    top_repositories: list[UserRepository] = field(default_factory=list)


@dataclass(frozen=True)
class UserEvent:
    id: str
    type: str
    created_at: str
    repo_name: str


@dataclass(frozen=True)
class UserContributionStats:
    total_prs: int
    total_issues: int


@dataclass(frozen=True)
class YearlyStats:
    year: int
    prs: int
    issues: int


@dataclass(frozen=True)
class ContributionCalendar:
    """A year of daily contribution counts with derived streaks."""

    year: int
    total_contributions: int
    longest_streak: int
    current_streak: int
    days: list[ContributionDay] = field(default_factory=list)


def parse_account_type(value) -> str:
    """Return "User" or "Organization"; anything else is treated as "User"."""
    return value if value in ACCOUNT_TYPES else "User"


def _user_path(username: str) -> str:
    return f"/users/{urllib.parse.quote(username, safe='')}"


def _raise_if_rate_limited(exc: Exception) -> None:
    """Re-raise 403 / 429 and rate-limit classified failures as GitHubRateLimitError."""
    if isinstance(exc, GitHubRateLimitError):
        raise exc
    status = getattr(exc, "status", None)
    if status in (403, 429) or classify_error(exc) is ErrorClass.RATE_LIMITED:
        raise GitHubRateLimitError(str(exc), status=status) from exc


def get_user_profile(client, username: str) -> Optional[UserProfile]:
    """Fetch a user's public profile over REST.

    Returns:
        UserProfile, or None when the user does not exist.

    Raises:
        GitHubRateLimitError: HTTP 403 or 429.
        GitHubAPIError: any other failure, or a profile without created_at.
    """
    try:
        data = client.get_json(_user_path(username))
    except GitHubNotFoundError:
        return None
    except GitHubAPIError as exc:
        _raise_if_rate_limited(exc)
        raise

    data = data or {}
    created_at = data.get("created_at")
    if not created_at:
        raise GitHubAPIError(f"Profile for {username} has no created_at timestamp")
    return UserProfile(
        login=data.get("login", username),
        avatar_url=data.get("avatar_url") or "",
        name=data.get("name") or None,
        bio=data.get("bio") or None,
        company=data.get("company") or None,
        location=data.get("location") or None,
        blog=data.get("blog") or None,
        twitter_username=data.get("twitter_username") or None,
        followers=int(data.get("followers") or 0),
        following=int(data.get("following") or 0),
        public_repos=int(data.get("public_repos") or 0),
        public_gists=int(data.get("public_gists") or 0),
        created_at=created_at,
        type=parse_account_type(data.get("type")),
    )


def _repository_from_node(node: dict) -> UserRepository:
    language = node.get("primaryLanguage") or {}
    return UserRepository(
        name=node.get("name", ""),
        name_with_owner=node.get("nameWithOwner", ""),
        description=node.get("description"),
        stargazer_count=int(node.get("stargazerCount") or 0),
        fork_count=int(node.get("forkCount") or 0),
        primary_language=language.get("name"),
        primary_language_color=language.get("color"),
        updated_at=node.get("updatedAt", ""),
        is_archived=bool(node.get("isArchived")),
        is_fork=bool(node.get("isFork")),
    )


def get_user_repositories(
    client,
    username: str,
    sleep: Callable[[float], None] = time.sleep,
) -> list[UserRepository]:
    """Owned public repositories, most-starred first (at most 100).

    Logins GraphQL cannot resolve as a User (bots, organizations) yield [].
    """
    config = client.config
    variables = {"username": username, "first": config.user_repositories_limit}
    try:
        data = with_retry(
            lambda: client.graphql(USER_REPOSITORIES_QUERY, variables),
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay_seconds,
            sleep=sleep,
        )
    except GitHubNotFoundError:
        return []
    except GitHubAPIError as exc:
        _raise_if_rate_limited(exc)
        if "could not resolve to a user" in str(exc).lower():
            return []
        raise

    user = data.get("user")
    if not user:
        return []
    nodes = (user.get("repositories") or {}).get("nodes") or []
    return [_repository_from_node(n) for n in nodes if n]


def calculate_user_stats(repositories: list[UserRepository], top_n: int = 10) -> UserStats:
    """Aggregate stars, forks and primary languages over ``repositories``."""
    total_repos = len(repositories)
    languages: dict[str, list] = {}
    for repo in repositories:
        if not repo.primary_language:
            continue
        entry = languages.setdefault(repo.primary_language, [repo.primary_language_color, 0])
        entry[1] += 1

    breakdown = [
        LanguageShare(
            name=name,
            color=color,
            count=count,
            percentage=int(count / total_repos * 100 + 0.5) if total_repos else 0,
        )
        for name, (color, count) in languages.items()
    ]
    breakdown.sort(key=lambda share: -share.count)

    top = [r for r in repositories if not r.is_fork and not r.is_archived][:top_n]

    return UserStats(
        total_stars=sum(r.stargazer_count for r in repositories),
        total_forks=sum(r.fork_count for r in repositories),
        total_repos=total_repos,
        language_breakdown=breakdown,
        top_repositories=top,
    )


def get_user_events(client, username: str) -> list[UserEvent]:
    """Recent public events (the API keeps roughly 90 days, 300 events).

    Pages of ``events_per_page`` are read until a short or empty page or
    ``events_max_pages`` pages. An unknown user yields [].
    """
    config = client.config
    events: list[UserEvent] = []

    for page in range(1, config.events_max_pages + 1):
        try:
            data = client.get_json(
                f"{_user_path(username)}/events",
                {"per_page": config.events_per_page, "page": page},
            )
        except GitHubNotFoundError:
            return []
        except GitHubAPIError as exc:
            _raise_if_rate_limited(exc)
            raise

        if not isinstance(data, list) or not data:
            break
        events.extend(
            UserEvent(
                id=str(e.get("id", "")),
                type=e.get("type", ""),
                created_at=e.get("created_at", ""),
                repo_name=(e.get("repo") or {}).get("name", ""),
            )
            for e in data
        )
        if len(data) < config.events_per_page:
            break

    logger.debug("Fetched %d events for %s", len(events), username)
    return events


def _search_count(client, query: str) -> int:
    data = client.get_json("/search/issues", {"q": query, "per_page": 1})
    return int((data or {}).get("total_count") or 0)


def _pr_and_issue_counts(
    client,
    username: str,
    qualifier: str,
    sleep: Callable[[float], None],
) -> tuple[int, int]:
    base = f"author:{username}"
    suffix = f" {qualifier}" if qualifier else ""
    prs, issues = sequential_fetch(
        [
            lambda: _search_count(client, f"{base} type:pr{suffix}"),
            lambda: _search_count(client, f"{base} type:issue{suffix}"),
        ],
        delay=client.config.sequential_delay_seconds,
        sleep=sleep,
    )
    return prs, issues


def get_user_contribution_stats(
    client,
    username: str,
    sleep: Callable[[float], None] = time.sleep,
) -> UserContributionStats:
    """All-time authored PR and issue counts from the search endpoint.

    Rate limits raise GitHubRateLimitError. Other failures are logged and
    reported as zero counts.
    """
    try:
        prs, issues = _pr_and_issue_counts(client, username, "", sleep)
    except GitHubAPIError as exc:
        _raise_if_rate_limited(exc)
        logger.warning("Contribution stats for %s unavailable: %s", username, exc)
        return UserContributionStats(total_prs=0, total_issues=0)
    return UserContributionStats(total_prs=prs, total_issues=issues)


def get_yearly_contribution_stats(
    client,
    username: str,
    year: int,
    sleep: Callable[[float], None] = time.sleep,
) -> YearlyStats:
    """PR and issue counts created within calendar ``year``. Lenient like
    get_user_contribution_stats()."""
    date_range = f"created:{year}-01-01..{year}-12-31"
    try:
        prs, issues = _pr_and_issue_counts(client, username, date_range, sleep)
    except GitHubAPIError as exc:
        _raise_if_rate_limited(exc)
        logger.warning("Yearly stats for %s (%d) unavailable: %s", username, year, exc)
        return YearlyStats(year=year, prs=0, issues=0)
    return YearlyStats(year=year, prs=prs, issues=issues)


def get_contribution_calendar(
    client,
    username: str,
    year: int,
    sleep: Callable[[float], None] = time.sleep,
    today=None,
) -> ContributionCalendar:
    """Daily contribution counts for ``year`` plus longest / current streaks.

    Lenient: an unknown user or any failure (rate limits included, once
    with_retry has given up) yields an all-zero calendar.
    """
    config = client.config
    empty = ContributionCalendar(
        year=year, total_contributions=0, longest_streak=0, current_streak=0
    )
    variables = {
        "username": username,
        "from": f"{year}-01-01T00:00:00Z",
        "to": f"{year}-12-31T23:59:59Z",
    }
    try:
        data = with_retry(
            lambda: client.graphql(CONTRIBUTION_CALENDAR_QUERY, variables),
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay_seconds,
            sleep=sleep,
        )
    except GitHubNotFoundError:
        logger.warning("User %s not found for contribution calendar", username)
        return empty
    except GitHubAPIError as exc:
        logger.warning("Contribution calendar for %s (%d) unavailable: %s", username, year, exc)
        return empty

    user = data.get("user")
    if not user:
        logger.warning("User %s not found for contribution calendar", username)
        return empty

    calendar = (user.get("contributionsCollection") or {}).get("contributionCalendar") or {}
    days = [
        ContributionDay(date=d["date"], contribution_count=int(d.get("contributionCount") or 0))
        for week in calendar.get("weeks") or []
        for d in week.get("contributionDays") or []
    ]
    streaks = calculate_streaks(days, year, today=today)
    return ContributionCalendar(
        year=year,
        total_contributions=int(calendar.get("totalContributions") or 0),
        longest_streak=streaks.longest_streak,
        current_streak=streaks.current_streak,
        days=days,
    )
