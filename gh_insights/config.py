"""
gh_insights/config.py — All tunable parameters for GitHub Insights.

No weight, threshold or page limit should be hardcoded in an ingestion or
metric module. API endpoints, retry policy, commit-history caps, scoring
weights and rank tiers live here so that calibration changes are a
single-file diff.
"""

from dataclasses import dataclass, field


def _default_authenticated_caps() -> tuple[tuple[int, int], ...]:
    return ((7, 500), (30, 2000), (365, 3000))


def _default_unauthenticated_caps() -> tuple[tuple[int, int], ...]:
    return ((7, 200),)


def _default_rank_thresholds() -> tuple[tuple[str, int], ...]:
    return (
        ("Diamond", 500_000),
        ("Platinum", 100_000),
        ("Gold", 10_000),
        ("Silver", 1_000),
        ("Bronze", 0),
    )


@dataclass(frozen=True)
class InsightsConfig:
    """
    Immutable configuration for the GitHub Insights fetch and metric layers.

    Override by constructing a new InsightsConfig with the desired values.
    """

    # ── GitHub endpoints ──────────────────────────────────────────────────────
    rest_api_base: str = "https://api.github.com"
    graphql_url: str = "https://api.github.com/graphql"
    api_version: str = "2022-11-28"

    user_agent: str = "GitHub-Insights"
    # GitHub rejects requests without a User-Agent. Keep it descriptive.

    request_timeout_seconds: float = 30.0
    # Per-call socket timeout applied to every outbound request.

    # ── Retry policy ──────────────────────────────────────────────────────────
    max_retries: int = 3
    # Total attempts for with_retry() (first call included).

    retry_base_delay_seconds: float = 1.0
    # Backoff before retry n is base * 2**n: 1s, 2s, 4s ...

    page_delay_seconds: float = 0.1
    # Pause before every commit-history page after the first.

    sequential_delay_seconds: float = 0.1
    # Pause between calls issued through sequential_fetch().

    min_request_interval_seconds: float = 0.0
    # Per-client pacing floor between any two calls. 0 disables pacing.

    # ── Commit history caps ───────────────────────────────────────────────────
    history_page_size: int = 100
    # GitHub GraphQL connections return at most 100 nodes per page.

    authenticated_caps: tuple[tuple[int, int], ...] = field(
        default_factory=_default_authenticated_caps
    )
    # (max_days, cap) pairs checked in order; first match wins.
    authenticated_unbounded_cap: int = 3000
    # days=None (whole history).
    authenticated_long_window_cap: int = 5000
    # days beyond the last table entry.

    unauthenticated_caps: tuple[tuple[int, int], ...] = field(
        default_factory=_default_unauthenticated_caps
    )
    unauthenticated_unbounded_cap: int = 300
    unauthenticated_long_window_cap: int = 300
    # Unauthenticated mode shares 60 req/hr per IP, so stay conservative.

    # ── Contributor score ─────────────────────────────────────────────────────
    commit_weight: float = 10.0
    additions_divisor: float = 100.0
    deletions_divisor: float = 200.0
    pull_request_weight: float = 20.0
    review_weight: float = 5.0

    avatar_url_template: str = "https://avatars.githubusercontent.com/{login}"
    # Fallback avatar when the login is not among the mentionable users.

    # ── Insight Score ─────────────────────────────────────────────────────────
    followers_weight: float = 10.0
    stars_weight: float = 5.0
    forks_weight: float = 3.0
    repos_weight: float = 2.0
    prs_weight: float = 1.0
    issues_weight: float = 0.5
    seniority_weight: float = 50.0
    # Per full year since account creation.

    rank_thresholds: tuple[tuple[str, int], ...] = field(
        default_factory=_default_rank_thresholds
    )
    # Highest tier first. The last entry must have a minimum of 0.

    # ── Activity time ─────────────────────────────────────────────────────────
    activity_share_threshold: float = 0.30
    # A time bucket must hold more than this share of events to win.

    neutral_peak_hour: int = 12
    # Reported peak hour when there are no events at all.

    # ── User events / search ──────────────────────────────────────────────────
    events_per_page: int = 100
    events_max_pages: int = 3
    # The events API only exposes ~90 days / 300 events.

    user_repositories_limit: int = 100
    top_repositories_limit: int = 10

    earliest_wrapped_year: int = 2008
    # GitHub launched in 2008; no contribution data exists before that.

    veteran_created_year: int = 2015
    # Accounts created in or before this year earn the veteran badge.


# Singleton default — import this everywhere instead of constructing anew.
DEFAULT_CONFIG = InsightsConfig()
