"""
gh_insights/metrics/badges.py — Achievement badges for contributors, profiles and yearly recaps.

Every badge rule lives in a BadgeFamily: an ordered tuple of tiers (highest
first) plus an explicit ``exclusive`` flag.

    exclusive=True   only the first tier met is awarded (streak tiers,
                     follower tiers, rank tiers, ...)
    exclusive=False  every tier met is awarded (contributor commit counts
                     stack: a 150-commit contributor holds all four)

Families are evaluated against a flat ``facts`` dict built from the input
record, so adding a family never touches the evaluator.

Output ordering:
    contributor / profile badges → fixed BADGE_PRIORITY order, unknown last
    wrapped badges               → rarity legendary > epic > rare > common,
                                   stable within a rarity
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from gh_insights.config import DEFAULT_CONFIG, InsightsConfig
from gh_insights.metrics.contributors import ContributorDetailStat

logger = logging.getLogger(__name__)

Facts = dict[str, Any]


@dataclass(frozen=True)
class Badge:
    """
    A single achievement.

    Fields:
        id:          Stable identifier (snake_case for contributor / profile
                     badges, kebab-case for wrapped badges).
        name:        Display name.
        description: One-line explanation of the rule.
        category:    'contributor' | 'user' | 'wrapped'
        rarity:      'common' | 'rare' | 'epic' | 'legendary' for wrapped
                     badges; None elsewhere.
        family:      Name of the BadgeFamily (exclusivity group) that awards it.
    """

    id: str
    name: str
    description: str
    category: str
    rarity: Optional[str] = None
    family: Optional[str] = None


@dataclass(frozen=True)
class BadgeTier:
    badge_id: str
    test: Callable[[Facts], bool]


@dataclass(frozen=True)
class BadgeFamily:
    """Ordered tiers, highest first, with the family's exclusivity rule."""

    name: str
    tiers: tuple[BadgeTier, ...]
    exclusive: bool


def at_least(key: str, minimum: float) -> Callable[[Facts], bool]:
    """Tier test: ``facts[key] >= minimum``; a missing or None fact never passes."""

    def test(facts: Facts) -> bool:
        value = facts.get(key)
        return value is not None and value >= minimum

    return test


def equals(key: str, expected: Any) -> Callable[[Facts], bool]:
    return lambda facts: facts.get(key) == expected


def evaluate_families(families: Iterable[BadgeFamily], facts: Facts) -> list[str]:
    """Return awarded badge ids in family order (tier order within a family)."""
    awarded: list[str] = []
    for family in families:
        for tier in family.tiers:
            if tier.test(facts):
                awarded.append(tier.badge_id)
                if family.exclusive:
                    break
    return awarded


# ── Badge catalogue ───────────────────────────────────────────────────────────

def _b(badge_id, name, description, category, rarity=None) -> tuple[str, Badge]:
    return badge_id, Badge(badge_id, name, description, category, rarity)


_BADGE_DEFINITIONS: dict[str, Badge] = dict([
    # Contributor
    _b("first_commit", "First Commit", "First commit", "contributor"),
    _b("active_contributor", "Active Contributor", "10+ commits", "contributor"),
    _b("dedicated_contributor", "Dedicated Contributor", "50+ commits", "contributor"),
    _b("core_contributor", "Core Contributor", "100+ commits", "contributor"),
    _b("top_contributor", "Top Contributor", "Highest contribution score", "contributor"),
    _b("top_3", "Top 3", "Top 3 by contribution score", "contributor"),
    _b("top_10", "Top 10", "Top 10 by contribution score", "contributor"),
    _b("pr_master", "PR Master", "10+ pull requests", "contributor"),
    _b("reviewer", "Code Reviewer", "10+ reviews", "contributor"),
    _b("code_machine", "Code Machine", "10,000+ lines added", "contributor"),
    _b("refactor_hero", "Refactor Hero", "5,000+ lines deleted", "contributor"),
    # Profile
    _b("influencer", "Influencer", "1,000+ followers", "user"),
    _b("popular", "Popular", "100+ followers", "user"),
    _b("prolific", "Prolific", "50+ public repositories", "user"),
    _b("builder", "Builder", "20+ public repositories", "user"),
    _b("user_pr_master", "PR Master", "100+ pull requests", "user"),
    _b("user_contributor", "Contributor", "50+ pull requests", "user"),
    _b("veteran", "Veteran", "On GitHub since 2015 or earlier", "user"),
])

_WRAPPED_DEFINITIONS: dict[str, Badge] = dict([
    _b("streak-7", "Week Warrior", "7 day streak", "wrapped", "common"),
    _b("streak-30", "Code Marathon", "30 day streak", "wrapped", "rare"),
    _b("streak-100", "Streak Legend", "100 day streak", "wrapped", "legendary"),
    _b("contributions-100", "Active", "100+ contributions", "wrapped", "common"),
    _b("contributions-500", "Power User", "500+ contributions", "wrapped", "rare"),
    _b("contributions-1000", "Machine", "1000+ contributions", "wrapped", "epic"),
    _b("contributions-2000", "Titan", "2000+ contributions", "wrapped", "legendary"),
    _b("prs-10", "PR Opener", "10+ PRs", "wrapped", "common"),
    _b("prs-50", "PR Master", "50+ PRs", "wrapped", "rare"),
    _b("prs-100", "PR Legend", "100+ PRs", "wrapped", "epic"),
    _b("polyglot-3", "Trilingual", "3+ languages", "wrapped", "common"),
    _b("polyglot-5", "Polyglot", "5+ languages", "wrapped", "rare"),
    _b("polyglot-10", "Language Master", "10+ languages", "wrapped", "epic"),
    _b("night-owl", "Night Owl", "Active at night", "wrapped", "rare"),
    _b("early-bird", "Early Bird", "Active in morning", "wrapped", "rare"),
    _b("growth-50", "Rising Star", "50%+ growth", "wrapped", "rare"),
    _b("growth-100", "Breakout Year", "100%+ growth", "wrapped", "epic"),
    _b("first-year", "Fresh Start", "First year", "wrapped", "common"),
    _b("veteran-5", "Veteran", "5+ years", "wrapped", "rare"),
    _b("veteran-10", "Elder", "10+ years", "wrapped", "epic"),
])

# Importance order for contributor and profile badges.
BADGE_PRIORITY: tuple[str, ...] = (
    "top_contributor",
    "top_3",
    "top_10",
    "core_contributor",
    "dedicated_contributor",
    "active_contributor",
    "code_machine",
    "refactor_hero",
    "pr_master",
    "reviewer",
    "first_commit",
    "influencer",
    "popular",
    "prolific",
    "builder",
    "user_pr_master",
    "user_contributor",
    "veteran",
)

RARITY_ORDER: dict[str, int] = {"legendary": 4, "epic": 3, "rare": 2, "common": 1}


# ── Rule tables ───────────────────────────────────────────────────────────────

CONTRIBUTOR_FAMILIES: tuple[BadgeFamily, ...] = (
    BadgeFamily("commits", exclusive=False, tiers=(
        BadgeTier("core_contributor", at_least("commits", 100)),
        BadgeTier("dedicated_contributor", at_least("commits", 50)),
        BadgeTier("active_contributor", at_least("commits", 10)),
        BadgeTier("first_commit", at_least("commits", 1)),
    )),
    BadgeFamily("rank", exclusive=True, tiers=(
        BadgeTier("top_contributor", equals("rank", 1)),
        BadgeTier("top_3", lambda f: f["rank"] <= 3 and f["total_contributors"] >= 3),
        BadgeTier("top_10", lambda f: f["rank"] <= 10 and f["total_contributors"] >= 10),
    )),
    BadgeFamily("pull_requests", exclusive=True, tiers=(
        BadgeTier("pr_master", at_least("pull_requests", 10)),
    )),
    BadgeFamily("reviews", exclusive=True, tiers=(
        BadgeTier("reviewer", at_least("reviews", 10)),
    )),
    BadgeFamily("additions", exclusive=True, tiers=(
        BadgeTier("code_machine", at_least("additions", 10_000)),
    )),
    BadgeFamily("deletions", exclusive=True, tiers=(
        BadgeTier("refactor_hero", at_least("deletions", 5_000)),
    )),
)

USER_FAMILIES: tuple[BadgeFamily, ...] = (
    BadgeFamily("followers", exclusive=True, tiers=(
        BadgeTier("influencer", at_least("followers", 1000)),
        BadgeTier("popular", at_least("followers", 100)),
    )),
    BadgeFamily("repositories", exclusive=True, tiers=(
        BadgeTier("prolific", at_least("public_repos", 50)),
        BadgeTier("builder", at_least("public_repos", 20)),
    )),
    # total_prs is None when the count is unknown; at_least() never passes then.
    BadgeFamily("pull_requests", exclusive=True, tiers=(
        BadgeTier("user_pr_master", at_least("total_prs", 100)),
        BadgeTier("user_contributor", at_least("total_prs", 50)),
    )),
    BadgeFamily("seniority", exclusive=True, tiers=(
        BadgeTier("veteran", lambda f: f["created_year"] <= f["veteran_created_year"]),
    )),
)

WRAPPED_FAMILIES: tuple[BadgeFamily, ...] = (
    BadgeFamily("streak", exclusive=True, tiers=(
        BadgeTier("streak-100", at_least("longest_streak", 100)),
        BadgeTier("streak-30", at_least("longest_streak", 30)),
        BadgeTier("streak-7", at_least("longest_streak", 7)),
    )),
    BadgeFamily("contributions", exclusive=True, tiers=(
        BadgeTier("contributions-2000", at_least("total_contributions", 2000)),
        BadgeTier("contributions-1000", at_least("total_contributions", 1000)),
        BadgeTier("contributions-500", at_least("total_contributions", 500)),
        BadgeTier("contributions-100", at_least("total_contributions", 100)),
    )),
    BadgeFamily("pull_requests", exclusive=True, tiers=(
        BadgeTier("prs-100", at_least("prs", 100)),
        BadgeTier("prs-50", at_least("prs", 50)),
        BadgeTier("prs-10", at_least("prs", 10)),
    )),
    BadgeFamily("languages", exclusive=True, tiers=(
        BadgeTier("polyglot-10", at_least("language_count", 10)),
        BadgeTier("polyglot-5", at_least("language_count", 5)),
        BadgeTier("polyglot-3", at_least("language_count", 3)),
    )),
    BadgeFamily("activity_time", exclusive=True, tiers=(
        BadgeTier("night-owl", equals("activity_type", "night-owl")),
        BadgeTier("early-bird", equals("activity_type", "early-bird")),
    )),
    BadgeFamily("growth", exclusive=True, tiers=(
        BadgeTier("growth-100", at_least("contribution_growth", 100)),
        BadgeTier("growth-50", at_least("contribution_growth", 50)),
    )),
    BadgeFamily("first_year", exclusive=False, tiers=(
        BadgeTier("first-year", equals("is_first_year", True)),
    )),
    BadgeFamily("seniority", exclusive=True, tiers=(
        BadgeTier("veteran-10", at_least("account_years", 10)),
        BadgeTier("veteran-5", at_least("account_years", 5)),
    )),
)


def _tag_families(
    definitions: dict[str, Badge],
    families: Iterable[BadgeFamily],
) -> dict[str, Badge]:
    """Copy ``definitions`` with each badge's ``family`` set to the family awarding it."""
    owner = {tier.badge_id: family.name for family in families for tier in family.tiers}
    return {badge_id: replace(badge, family=owner.get(badge_id)) for badge_id, badge in definitions.items()}


BADGES: dict[str, Badge] = _tag_families(_BADGE_DEFINITIONS, CONTRIBUTOR_FAMILIES + USER_FAMILIES)
WRAPPED_BADGES: dict[str, Badge] = _tag_families(_WRAPPED_DEFINITIONS, WRAPPED_FAMILIES)


# ── Inputs ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class UserBadgeInput:
    """Profile facts for calculate_user_badges(). ``total_prs`` None = unknown."""

    followers: int
    public_repos: int
    created_at: str
    total_prs: Optional[int] = None


@dataclass(frozen=True)
class WrappedBadgeInput:
    """
    Yearly recap facts for calculate_wrapped_badges().

    Fields:
        longest_streak:      Longest run of contribution days in the year.
        total_contributions: Calendar total for the year.
        prs:                 Pull requests opened in the year.
        language_count:      Distinct primary languages across repositories.
        activity_type:       ActivityTimeAnalysis.archetype.
        contribution_growth: Percent change versus the previous year, or
                             None when there is nothing to compare against.
        account_years:       Whole years since the account was created.
        is_first_year:       True when the account was created in that year.
    """

    longest_streak: int = 0
    total_contributions: int = 0
    prs: int = 0
    language_count: int = 0
    activity_type: str = "balanced"
    contribution_growth: Optional[float] = None
    account_years: int = 0
    is_first_year: bool = False


# ── Sorting ───────────────────────────────────────────────────────────────────

def sort_badges_by_importance(badges: Iterable[Badge]) -> list[Badge]:
    """Sort by BADGE_PRIORITY; ids not listed keep their order at the end."""
    position = {badge_id: i for i, badge_id in enumerate(BADGE_PRIORITY)}
    return sorted(badges, key=lambda b: position.get(b.id, len(position)))


def sort_badges_by_rarity(badges: Iterable[Badge]) -> list[Badge]:
    """Sort rarest first; stable within a rarity."""
    return sorted(badges, key=lambda b: -RARITY_ORDER.get(b.rarity or "", 0))


# ── Public API ────────────────────────────────────────────────────────────────

def calculate_badges(contributor: ContributorDetailStat, total_contributors: int) -> list[Badge]:
    """
    Badges for one ranked contributor.

    Args:
        contributor:        ContributorDetailStat (commits, lines, PRs,
                            reviews, rank).
        total_contributors: Size of the ranked list the contributor is in.
                            Rank badges need a large enough field: top_3
                            requires at least 3 contributors, top_10 at
                            least 10.

    Returns:
        Badge list in BADGE_PRIORITY order.
    """
    facts: Facts = {
        "commits": contributor.commits,
        "additions": contributor.additions,
        "deletions": contributor.deletions,
        "pull_requests": contributor.pull_requests,
        "reviews": contributor.reviews,
        "rank": contributor.rank,
        "total_contributors": total_contributors,
    }
    ids = evaluate_families(CONTRIBUTOR_FAMILIES, facts)
    return sort_badges_by_importance(BADGES[i] for i in ids)


def calculate_user_badges(
    stats: UserBadgeInput,
    config: InsightsConfig = DEFAULT_CONFIG,
) -> list[Badge]:
    """Profile badges (followers, repositories, PRs when known, seniority)."""
    created_year = datetime.fromisoformat(stats.created_at.replace("Z", "+00:00")).year
    facts: Facts = {
        "followers": stats.followers,
        "public_repos": stats.public_repos,
        "total_prs": stats.total_prs,
        "created_year": created_year,
        "veteran_created_year": config.veteran_created_year,
    }
    ids = evaluate_families(USER_FAMILIES, facts)
    return sort_badges_by_importance(BADGES[i] for i in ids)


def calculate_wrapped_badges(data: WrappedBadgeInput) -> list[Badge]:
    """Yearly recap badges, rarest first."""
    facts: Facts = {
        "longest_streak": data.longest_streak,
        "total_contributions": data.total_contributions,
        "prs": data.prs,
        "language_count": data.language_count,
        "activity_type": data.activity_type,
        "contribution_growth": data.contribution_growth,
        "account_years": data.account_years,
        "is_first_year": data.is_first_year,
    }
    ids = evaluate_families(WRAPPED_FAMILIES, facts)
    badges = sort_badges_by_rarity(WRAPPED_BADGES[i] for i in ids)
    logger.debug("Wrapped badges: %s", [b.id for b in badges])
    return badges
