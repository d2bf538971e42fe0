"""
gh_insights/metrics/contributors.py — Contributor ranking.

Merges three independent record streams into one accumulator per identity:
    1. Commit authorship      → commits, additions, deletions
    2. Pull request authorship → pull_requests
    3. Review authorship       → reviews (self-reviews excluded)

Score formula:
    score = round(commits × 10 + additions / 100 + deletions / 200
                  + pull_requests × 20 + reviews × 5)

Contributors are sorted by score descending and given a dense 1-based rank.
Equal scores are ordered by identity (case-insensitive, then exact) so the
ranking never depends on upstream record order.
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

import pandas as pd

from gh_insights.config import DEFAULT_CONFIG, InsightsConfig
from gh_insights.ingestion.commits import CommitRecord, resolve_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullRequestRecord:
    """A pull request with its author and the authors of its reviews.

    ``reviewers`` holds one entry per review (a reviewer who reviewed twice
    appears twice); None marks a deleted / ghost account.
    """

    author: Optional[str]
    merged: bool = False
    reviewers: tuple[Optional[str], ...] = ()


@dataclass(frozen=True)
class MentionableUser:
    """Profile data used to decorate a ranked contributor."""

    login: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass
class ContributorAccumulator:
    """Running totals for one identity during a single aggregation pass."""

    commits: int = 0
    additions: int = 0
    deletions: int = 0
    pull_requests: int = 0
    reviews: int = 0


@dataclass(frozen=True)
class ContributorDetailStat:
    """
    Ranked contribution summary for one contributor.

    Fields:
        login:          Identity key (GitHub login, or git display name).
        name:           Display name (profile name, else login).
        avatar_url:     Profile avatar, or the avatars.githubusercontent fallback.
        commits:        Commits authored on the default branch.
        additions:      Lines added across those commits.
        deletions:      Lines deleted across those commits.
        pull_requests:  Pull requests authored.
        reviews:        Reviews left on other people's pull requests.
        score:          Weighted contribution score (integer).
        rank:           1-based dense rank by score.
    """

    login: str
    name: str
    avatar_url: str
    commits: int
    additions: int
    deletions: int
    pull_requests: int
    reviews: int
    score: int
    rank: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def contributor_score(acc: ContributorAccumulator, config: InsightsConfig = DEFAULT_CONFIG) -> int:
    """Weighted score for one accumulator, rounded half up."""
    raw = (
        acc.commits * config.commit_weight
        + acc.additions / config.additions_divisor
        + acc.deletions / config.deletions_divisor
        + acc.pull_requests * config.pull_request_weight
        + acc.reviews * config.review_weight
    )
    return _round_half_up(raw)


def accumulate_contributions(
    commits: Iterable[CommitRecord],
    pull_requests: Iterable[PullRequestRecord] = (),
) -> dict[str, ContributorAccumulator]:
    """
    Fold commit, pull request and review records into per-identity totals.

    Commits whose author cannot be resolved are skipped. PR authors and
    reviewers are GitHub logins; a review by the PR's own author is not
    counted.

    Returns:
        Dict mapping identity → ContributorAccumulator, in first-seen order.
    """
    totals: dict[str, ContributorAccumulator] = {}
    skipped = 0

    for commit in commits:
        identity = commit.identity
        if identity is None:
            skipped += 1
            continue
        acc = totals.setdefault(identity.key, ContributorAccumulator())
        acc.commits += 1
        acc.additions += commit.additions
        acc.deletions += commit.deletions

    for pr in pull_requests:
        author = resolve_identity(pr.author)
        if author is not None:
            totals.setdefault(author.key, ContributorAccumulator()).pull_requests += 1

        for reviewer_login in pr.reviewers:
            reviewer = resolve_identity(reviewer_login)
            if reviewer is None:
                continue
            if author is not None and reviewer.key == author.key:
                continue
            totals.setdefault(reviewer.key, ContributorAccumulator()).reviews += 1

    if skipped:
        logger.debug("Skipped %d commits with unresolvable authors", skipped)
    return totals


def aggregate_contributors(
    commits: Iterable[CommitRecord],
    pull_requests: Iterable[PullRequestRecord] = (),
    users: Iterable[MentionableUser] = (),
    config: InsightsConfig = DEFAULT_CONFIG,
) -> list[ContributorDetailStat]:
    """
    Build the ranked contributor list for a repository.

    Algorithm:
        1. accumulate_contributions() over commits and pull requests.
        2. score = contributor_score(acc) for every identity.
        3. Sort by (-score, identity.lower(), identity).
        4. rank = position + 1.

    Args:
        commits:       CommitRecords from the default branch.
        pull_requests: PullRequestRecords (author + review authors).
        users:         Optional profile lookup for names and avatars.
        config:        InsightsConfig with score weights and avatar fallback.

    Returns:
        ContributorDetailStat list sorted by rank (1..N, no gaps).
    """
    totals = accumulate_contributions(commits, pull_requests)
    profiles = {u.login: u for u in users}

    scored = [(login, acc, contributor_score(acc, config)) for login, acc in totals.items()]
    scored.sort(key=lambda item: (-item[2], item[0].lower(), item[0]))

    ranked: list[ContributorDetailStat] = []
    for position, (login, acc, score) in enumerate(scored):
        profile = profiles.get(login)
        ranked.append(
            ContributorDetailStat(
                login=login,
                name=(profile.name if profile and profile.name else login),
                avatar_url=(
                    profile.avatar_url
                    if profile and profile.avatar_url
                    else config.avatar_url_template.format(login=login)
                ),
                commits=acc.commits,
                additions=acc.additions,
                deletions=acc.deletions,
                pull_requests=acc.pull_requests,
                reviews=acc.reviews,
                score=score,
                rank=position + 1,
            )
        )

    logger.debug(
        "Ranked %d contributors. Top: %s",
        len(ranked), ranked[0].login if ranked else "-",
    )
    return ranked


def contributors_to_dataframe(contributors: list[ContributorDetailStat]) -> pd.DataFrame:
    """Tabular view of ranked contributors, one row per contributor, by rank."""
    columns = [f for f in ContributorDetailStat.__dataclass_fields__]
    if not contributors:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([asdict(c) for c in contributors], columns=columns)
