"""
gh_insights/metrics/temporal.py — Contribution streaks and activity-time archetypes.

Two independent, stateless analyses:

    Streaks:
        longest_streak = longest run of consecutive calendar entries with
                         contribution_count > 0.
        current_streak = run ending today (current year) or on the last day
                         of the calendar (past years).

    Activity time:
        Event timestamps are bucketed by UTC hour into four windows

            night-owl       22, 23, 0, 1, 2, 3
            early-bird      4 – 8
            business-hours  9 – 17
            evening-coder   18 – 21

        A window becomes the archetype only if it holds more than 30% of all
        events AND strictly more than every other window. Otherwise the
        archetype is 'balanced'.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from gh_insights.config import DEFAULT_CONFIG, InsightsConfig

logger = logging.getLogger(__name__)

NIGHT_OWL = "night-owl"
EARLY_BIRD = "early-bird"
BUSINESS_HOURS = "business-hours"
EVENING_CODER = "evening-coder"
BALANCED = "balanced"

# Evaluation order; also the order used in log output.
ACTIVITY_BUCKETS: tuple[tuple[str, tuple[int, ...]], ...] = (
    (NIGHT_OWL, (22, 23, 0, 1, 2, 3)),
    (EARLY_BIRD, (4, 5, 6, 7, 8)),
    (BUSINESS_HOURS, (9, 10, 11, 12, 13, 14, 15, 16, 17)),
    (EVENING_CODER, (18, 19, 20, 21)),
)

ARCHETYPE_LABELS: dict[str, str] = {
    NIGHT_OWL: "Night Owl",
    EARLY_BIRD: "Early Bird",
    BUSINESS_HOURS: "9-to-5 Coder",
    EVENING_CODER: "Evening Coder",
    BALANCED: "All-Day Coder",
}


@dataclass(frozen=True)
class ContributionDay:
    """One cell of a contribution calendar."""

    date: str                 # YYYY-MM-DD
    contribution_count: int


@dataclass(frozen=True)
class StreakResult:
    """Longest and current runs of days with at least one contribution."""

    longest_streak: int
    current_streak: int


@dataclass(frozen=True)
class ActivityTimeAnalysis:
    """
    Hour-of-day activity profile.

    Fields:
        archetype:    'night-owl' | 'early-bird' | 'business-hours' |
                      'evening-coder' | 'balanced'
        peak_hour:    UTC hour (0–23) with the most events; lowest hour on ties.
        distribution: 24 per-hour shares in percent.
        label:        Display label for the archetype.
    """

    archetype: str
    peak_hour: int
    distribution: list[float]
    label: str


def _parse_day(value: str) -> date:
    return date.fromisoformat(value[:10])


def calculate_streaks(
    days: Iterable[ContributionDay],
    year: int,
    today: Optional[date] = None,
) -> StreakResult:
    """
    Compute the longest and current contribution streaks for ``year``.

    Args:
        days:  Calendar entries, in any order.
        year:  Calendar year the entries belong to.
        today: Reference date (defaults to the current UTC date).

    Returns:
        StreakResult. For the current year, current_streak counts backward
        from today's entry and is 0 when today is not in the calendar. For
        past years it counts backward from the last entry. Empty input
        yields (0, 0).
    """
    ordered = sorted(days, key=lambda d: _parse_day(d.date))
    if not ordered:
        return StreakResult(longest_streak=0, current_streak=0)

    today = today or datetime.now(tz=timezone.utc).date()

    longest = 0
    running = 0
    for day in ordered:
        if day.contribution_count > 0:
            running += 1
            longest = max(longest, running)
        else:
            running = 0

    if year == today.year:
        anchor = next(
            (i for i, d in enumerate(ordered) if _parse_day(d.date) == today),
            None,
        )
    else:
        anchor = len(ordered) - 1

    current = 0
    if anchor is not None:
        for index in range(anchor, -1, -1):
            if ordered[index].contribution_count <= 0:
                break
            current += 1

    return StreakResult(longest_streak=longest, current_streak=current)


def _utc_hour(value: Union[str, datetime]) -> int:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).hour


def hourly_counts(timestamps: Iterable[Union[str, datetime]]) -> np.ndarray:
    """Histogram of events per UTC hour (length 24)."""
    hours = [_utc_hour(ts) for ts in timestamps]
    return np.bincount(np.asarray(hours, dtype=np.int64), minlength=24)


def analyze_activity_time(
    timestamps: Iterable[Union[str, datetime]],
    config: InsightsConfig = DEFAULT_CONFIG,
) -> ActivityTimeAnalysis:
    """
    Classify a user's hour-of-day activity into an archetype.

    Args:
        timestamps: Event times (ISO-8601 strings or datetimes). Naive
                    datetimes are taken as UTC.
        config:     InsightsConfig (share threshold, neutral peak hour).

    Returns:
        ActivityTimeAnalysis. With no events: 'balanced', peak hour 12 and a
        uniform 100/24 distribution.
    """
    counts = hourly_counts(timestamps)
    total = int(counts.sum())

    if total == 0:
        return ActivityTimeAnalysis(
            archetype=BALANCED,
            peak_hour=config.neutral_peak_hour,
            distribution=[100 / 24] * 24,
            label=ARCHETYPE_LABELS[BALANCED],
        )

    # Whole percents, rounded half up.
    distribution = [int(v) for v in np.floor(counts * 100 / total + 0.5)]
    peak_hour = int(np.argmax(counts))  # argmax returns the first maximum

    bucket_totals = {
        name: int(counts[list(hours)].sum()) for name, hours in ACTIVITY_BUCKETS
    }
    threshold = total * config.activity_share_threshold

    archetype = BALANCED
    for name, value in bucket_totals.items():
        others = [v for other, v in bucket_totals.items() if other != name]
        if value > threshold and value > max(others):
            archetype = name
            break

    logger.debug(
        "Activity time: %d events, buckets=%s → %s (peak %02d:00)",
        total, bucket_totals, archetype, peak_hour,
    )
    return ActivityTimeAnalysis(
        archetype=archetype,
        peak_hour=peak_hour,
        distribution=distribution,
        label=ARCHETYPE_LABELS[archetype],
    )


def calendar_to_dataframe(days: Iterable[ContributionDay]) -> pd.DataFrame:
    """Calendar as a date-sorted DataFrame with columns date, contribution_count."""
    records = [asdict(d) for d in days]
    df = pd.DataFrame(records, columns=["date", "contribution_count"])
    if df.empty:
        return df
    df["date"] = pd.to_datetime(df["date"])
    return df.sort_values("date", kind="mergesort").reset_index(drop=True)
