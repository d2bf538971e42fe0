"""
gh_insights/metrics/insight_score.py — Insight Score: a single influence number per user.

Formula (each term floored independently, then summed):

    followers × 10 + stars × 5 + forks × 3 + public_repos × 2
    + prs × 1 + issues × 0.5 + account_years × 50

Rank tiers (first threshold met, highest first):

    Diamond ≥ 500 000 · Platinum ≥ 100 000 · Gold ≥ 10 000
    Silver ≥ 1 000 · Bronze ≥ 0
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from gh_insights.config import DEFAULT_CONFIG, InsightsConfig

_SECONDS_PER_YEAR = 365 * 24 * 60 * 60


@dataclass(frozen=True)
class InsightScoreInput:
    followers: int = 0
    total_stars: int = 0
    total_forks: int = 0
    public_repos: int = 0
    total_prs: int = 0
    total_issues: int = 0
    account_years: int = 0


@dataclass(frozen=True)
class ScoreBreakdown:
    """Floored contribution of each input to the total score."""

    followers: int
    stars: int
    forks: int
    repos: int
    prs: int
    issues: int
    seniority: int

    @property
    def total(self) -> int:
        return (
            self.followers + self.stars + self.forks + self.repos
            + self.prs + self.issues + self.seniority
        )


@dataclass(frozen=True)
class InsightScoreResult:
    score: int
    rank: str
    breakdown: ScoreBreakdown


def get_rank_from_score(score: float, config: InsightsConfig = DEFAULT_CONFIG) -> str:
    """Map a score onto its rank tier."""
    for rank, minimum in config.rank_thresholds:
        if score >= minimum:
            return rank
    return config.rank_thresholds[-1][0]


def calculate_insight_score(
    data: InsightScoreInput,
    config: InsightsConfig = DEFAULT_CONFIG,
) -> InsightScoreResult:
    """
    Compute the Insight Score, its per-term breakdown and rank.

    Example:
        followers=100, stars=200, forks=50, repos=30, prs=100, issues=40,
        account_years=5 → 1000 + 1000 + 150 + 60 + 100 + 20 + 250 = 2580 (Silver)
    """
    breakdown = ScoreBreakdown(
        followers=math.floor(data.followers * config.followers_weight),
        stars=math.floor(data.total_stars * config.stars_weight),
        forks=math.floor(data.total_forks * config.forks_weight),
        repos=math.floor(data.public_repos * config.repos_weight),
        prs=math.floor(data.total_prs * config.prs_weight),
        issues=math.floor(data.total_issues * config.issues_weight),
        seniority=math.floor(data.account_years * config.seniority_weight),
    )
    score = breakdown.total
    return InsightScoreResult(
        score=score,
        rank=get_rank_from_score(score, config),
        breakdown=breakdown,
    )


def calculate_account_years(created_at: str, now: Optional[datetime] = None) -> int:
    """Whole 365-day years elapsed since ``created_at`` (ISO 8601)."""
    created = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    now = now or datetime.now(tz=timezone.utc)
    return math.floor((now - created).total_seconds() / _SECONDS_PER_YEAR)


def format_score(score: float) -> str:
    """Compact display form: 1.2M, 3.4K, or the plain number below 1000."""
    if score >= 1_000_000:
        return f"{score / 1_000_000:.1f}M"
    if score >= 1_000:
        return f"{score / 1_000:.1f}K"
    return f"{score:,}"
