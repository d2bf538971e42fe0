"""
gh_insights/pipeline.py — Single-call orchestrators.

Three entry points, one per analysis surface:

    analyze_repository(client, "owner", "repo", days=30)
        repository metadata → commit history → ranked contributors
        → per-contributor badges, languages and commit-time archetype

    analyze_user(client, "username")
        profile → repositories / stats → PR & issue counts → recent events
        → Insight Score, activity archetype, profile badges

    analyze_wrapped(client, "username", 2024)
        profile → yearly PR & issue counts → contribution calendar + streaks
        → Insight Score (yearly PRs / issues) → wrapped badges

Usage:
    from gh_insights.ingestion.client import create_client
    from gh_insights.pipeline import analyze_repository
    result = analyze_repository(create_client(token), "octocat", "hello-world")
    print(result.contributors[0].login)
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Optional

from gh_insights.config import DEFAULT_CONFIG, InsightsConfig
from gh_insights.ingestion.client import (
    PUBLIC_RATE_LIMIT,
    RateLimitInfo,
    RateLimitState,
)
from gh_insights.ingestion.commits import CommitRecord, fetch_commit_history
from gh_insights.ingestion.errors import GitHubNotFoundError
from gh_insights.ingestion.repository import (
    LanguageStat,
    Repository,
    fetch_contributor_activity,
    get_language_stats,
    get_repository,
)
from gh_insights.ingestion.user import (
    ContributionCalendar,
    LanguageShare,
    UserContributionStats,
    UserProfile,
    UserStats,
    YearlyStats,
    calculate_user_stats,
    get_contribution_calendar,
    get_user_contribution_stats,
    get_user_events,
    get_user_profile,
    get_user_repositories,
    get_yearly_contribution_stats,
)
from gh_insights.metrics.badges import (
    Badge,
    UserBadgeInput,
    WrappedBadgeInput,
    calculate_badges,
    calculate_user_badges,
    calculate_wrapped_badges,
)
from gh_insights.metrics.contributors import ContributorDetailStat, aggregate_contributors
from gh_insights.metrics.insight_score import (
    InsightScoreInput,
    InsightScoreResult,
    calculate_account_years,
    calculate_insight_score,
)
from gh_insights.metrics.temporal import ActivityTimeAnalysis, analyze_activity_time

logger = logging.getLogger(__name__)


class InvalidYearError(ValueError):
    """Wrapped year outside earliest_wrapped_year .. current year."""


@dataclass
class RepositoryAnalysis:
    """
    Complete output of analyze_repository().

    Fields:
        repository:   Repository metadata.
        days:         Look-back window used for the commit history (None = all).
        commits:      CommitRecords from the default branch, newest first.
        contributors: Ranked ContributorDetailStat list.
        badges:       login → badges in importance order.
        languages:    Top languages by code size.
        activity:     Commit-time archetype of the repository.
        rate_limit:   Public rate-limit snapshot (unauthenticated mode only).
    """

    repository: Repository
    days: Optional[int]
    commits: list[CommitRecord]
    contributors: list[ContributorDetailStat]
    badges: dict[str, list[Badge]] = field(default_factory=dict)
    languages: list[LanguageStat] = field(default_factory=list)
    activity: Optional[ActivityTimeAnalysis] = None
    rate_limit: Optional[RateLimitInfo] = None


@dataclass
class UserAnalysis:
    """Complete output of analyze_user()."""

    profile: UserProfile
    stats: UserStats
    contributions: UserContributionStats
    insight_score: InsightScoreResult
    activity: ActivityTimeAnalysis
    badges: list[Badge] = field(default_factory=list)


@dataclass
class WrappedAnalysis:
    """
    Complete output of analyze_wrapped().

    Followers, stars, forks and repository count are current values (the
    API has no history for them); PR and issue counts are for ``year`` only.
    """

    year: int
    profile: UserProfile
    yearly_stats: YearlyStats
    calendar: ContributionCalendar
    top_languages: list[LanguageShare]
    insight_score: InsightScoreResult
    activity: ActivityTimeAnalysis
    contribution_growth: Optional[float]
    member_since: int
    badges: list[Badge] = field(default_factory=list)


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def analyze_repository(
    client,
    owner: str,
    repo: str,
    days: Optional[int] = 30,
    rate_limit_state: RateLimitState = PUBLIC_RATE_LIMIT,
    sleep: Callable[[float], None] = time.sleep,
    now: Optional[datetime] = None,
) -> RepositoryAnalysis:
    """
    Fetch and rank everything about one repository.

    Contributors are aggregated over the windowed commit history; pull
    requests, reviews and profile data come from the latest 100 PRs.

    Raises:
        GitHubNotFoundError: unknown repository.
        GitHubRateLimitError: budget exhausted after retries.
        GitHubAPIError: private repository without a token, or other failure.
    """
    config = client.config
    logger.info("Analyzing %s/%s (days=%s)", owner, repo, days)

    repository = get_repository(client, owner, repo, rate_limit_state, sleep=sleep)
    commits = fetch_commit_history(client, owner, repo, days, config=config, sleep=sleep, now=now)
    activity_streams = fetch_contributor_activity(client, owner, repo, sleep=sleep)

    contributors = aggregate_contributors(
        commits,
        activity_streams.pull_requests,
        activity_streams.users,
        config=config,
    )
    total = len(contributors)
    badges = {c.login: calculate_badges(c, total) for c in contributors}

    languages = get_language_stats(client, owner, repo, sleep=sleep)
    activity = analyze_activity_time(
        [c.committed_at for c in commits if c.committed_at], config
    )

    logger.info(
        "%s/%s: %d commits, %d contributors, archetype=%s",
        owner, repo, len(commits), total, activity.archetype,
    )
    return RepositoryAnalysis(
        repository=repository,
        days=days,
        commits=commits,
        contributors=contributors,
        badges=badges,
        languages=languages,
        activity=activity,
        rate_limit=None if client.authenticated else rate_limit_state.get(),
    )


def _require_profile(client, username: str) -> UserProfile:
    profile = get_user_profile(client, username)
    if profile is None:
        raise GitHubNotFoundError(f"User not found: {username}")
    return profile


def analyze_user(
    client,
    username: str,
    sleep: Callable[[float], None] = time.sleep,
    now: Optional[datetime] = None,
) -> UserAnalysis:
    """
    Profile analytics for one user.

    Raises:
        GitHubNotFoundError: unknown user.
        GitHubRateLimitError: budget exhausted.
    """
    config = client.config
    profile = _require_profile(client, username)
    repositories = get_user_repositories(client, username, sleep=sleep)
    stats = calculate_user_stats(repositories, config.top_repositories_limit)
    contributions = get_user_contribution_stats(client, username, sleep=sleep)
    events = get_user_events(client, username)

    score = calculate_insight_score(
        InsightScoreInput(
            followers=profile.followers,
            total_stars=stats.total_stars,
            total_forks=stats.total_forks,
            public_repos=stats.total_repos,
            total_prs=contributions.total_prs,
            total_issues=contributions.total_issues,
            account_years=calculate_account_years(profile.created_at, now),
        ),
        config,
    )
    activity = analyze_activity_time([e.created_at for e in events if e.created_at], config)
    badges = calculate_user_badges(
        UserBadgeInput(
            followers=profile.followers,
            public_repos=profile.public_repos,
            created_at=profile.created_at,
            total_prs=contributions.total_prs,
        ),
        config,
    )

    logger.info(
        "%s: Insight Score %d (%s), %d repos, %d events",
        profile.login, score.score, score.rank, stats.total_repos, len(events),
    )
    return UserAnalysis(
        profile=profile,
        stats=stats,
        contributions=contributions,
        insight_score=score,
        activity=activity,
        badges=badges,
    )


def validate_wrapped_year(
    year: int,
    today: Optional[date] = None,
    config: InsightsConfig = DEFAULT_CONFIG,
) -> int:
    """Return ``year`` if it lies in earliest_wrapped_year .. current year."""
    earliest = config.earliest_wrapped_year
    current = (today or datetime.now(tz=timezone.utc).date()).year
    if year < earliest or year > current:
        raise InvalidYearError(
            f"Invalid year {year}. Must be between {earliest} and {current}."
        )
    return year


def contribution_growth(current: int, previous: Optional[int]) -> Optional[float]:
    """Percent change from ``previous`` to ``current``; None without a baseline."""
    if not previous:
        return None
    return (current - previous) / previous * 100


def analyze_wrapped(
    client,
    username: str,
    year: int,
    sleep: Callable[[float], None] = time.sleep,
    today: Optional[date] = None,
) -> WrappedAnalysis:
    """
    Yearly recap for one user.

    Growth compares the calendar total with the previous year's (None when
    that year predates GitHub or had no contributions). The activity
    archetype only sees events from ``year`` that are still inside the
    events API window, so older years usually come out 'balanced'.

    Raises:
        InvalidYearError: ``year`` out of range.
        GitHubNotFoundError: unknown user.
        GitHubRateLimitError: budget exhausted.
    """
    config = client.config
    today = today or datetime.now(tz=timezone.utc).date()
    validate_wrapped_year(year, today, config)

    profile = _require_profile(client, username)
    repositories = get_user_repositories(client, username, sleep=sleep)
    stats = calculate_user_stats(repositories, config.top_repositories_limit)
    yearly = get_yearly_contribution_stats(client, username, year, sleep=sleep)
    calendar = get_contribution_calendar(client, username, year, sleep=sleep, today=today)

    previous_total: Optional[int] = None
    if year - 1 >= config.earliest_wrapped_year:
        previous = get_contribution_calendar(client, username, year - 1, sleep=sleep, today=today)
        previous_total = previous.total_contributions
    growth = contribution_growth(calendar.total_contributions, previous_total)

    events = [
        e for e in get_user_events(client, username)
        if e.created_at and _parse_timestamp(e.created_at).year == year
    ]
    activity = analyze_activity_time([e.created_at for e in events], config)

    now = datetime.combine(today, datetime.min.time(), tzinfo=timezone.utc)
    account_years = calculate_account_years(profile.created_at, now)
    member_since = _parse_timestamp(profile.created_at).year

    score = calculate_insight_score(
        InsightScoreInput(
            followers=profile.followers,
            total_stars=stats.total_stars,
            total_forks=stats.total_forks,
            public_repos=stats.total_repos,
            total_prs=yearly.prs,
            total_issues=yearly.issues,
            account_years=account_years,
        ),
        config,
    )
    badges = calculate_wrapped_badges(
        WrappedBadgeInput(
            longest_streak=calendar.longest_streak,
            total_contributions=calendar.total_contributions,
            prs=yearly.prs,
            language_count=len(stats.language_breakdown),
            activity_type=activity.archetype,
            contribution_growth=growth,
            account_years=account_years,
            is_first_year=member_since == year,
        )
    )

    logger.info(
        "%s %d wrapped: %d contributions, longest streak %d, %d badges",
        profile.login, year, calendar.total_contributions,
        calendar.longest_streak, len(badges),
    )
    return WrappedAnalysis(
        year=year,
        profile=profile,
        yearly_stats=yearly,
        calendar=calendar,
        top_languages=stats.language_breakdown[:3],
        insight_score=score,
        activity=activity,
        contribution_growth=growth,
        member_since=member_since,
        badges=badges,
    )
