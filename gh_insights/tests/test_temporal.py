"""
Unit tests for gh_insights.metrics.temporal — streaks and activity-time archetypes.
"""
from datetime import date, datetime, timezone

import pytest

from gh_insights.metrics.temporal import (
    BALANCED,
    BUSINESS_HOURS,
    EARLY_BIRD,
    EVENING_CODER,
    NIGHT_OWL,
    ContributionDay,
    analyze_activity_time,
    calculate_streaks,
    calendar_to_dataframe,
    hourly_counts,
)


def _days(counts, start="2023-12-26"):
    first = date.fromisoformat(start)
    return [
        ContributionDay(date=date.fromordinal(first.toordinal() + i).isoformat(), contribution_count=c)
        for i, c in enumerate(counts)
    ]


def _at(hour, day=1):
    return datetime(2024, 3, day, hour, 15, tzinfo=timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# calculate_streaks
# ---------------------------------------------------------------------------


def test_empty_calendar_has_no_streaks():
    result = calculate_streaks([], 2023)
    assert (result.longest_streak, result.current_streak) == (0, 0)


def test_past_year_streak_anchored_at_last_day():
    """[1,2,1,0,1,1] → longest 3, current 2 (tail run)."""
    days = _days([1, 2, 1, 0, 1, 1])
    result = calculate_streaks(days, 2023, today=date(2025, 6, 1))
    assert result.longest_streak == 3
    assert result.current_streak == 2


def test_streaks_ignore_input_order():
    days = _days([1, 2, 1, 0, 1, 1])
    result = calculate_streaks(list(reversed(days)), 2023, today=date(2025, 6, 1))
    assert (result.longest_streak, result.current_streak) == (3, 2)


def test_past_year_ending_on_zero_has_no_current_streak():
    result = calculate_streaks(_days([1, 1, 1, 0]), 2023, today=date(2025, 1, 1))
    assert result.longest_streak == 3
    assert result.current_streak == 0


def test_current_year_counts_back_from_today():
    """Entries after today (future zeros) are ignored by the current streak."""
    days = _days([0, 1, 1, 1, 0, 0], start="2024-05-01")
    result = calculate_streaks(days, 2024, today=date(2024, 5, 4))
    assert result.current_streak == 3
    assert result.longest_streak == 3


def test_current_year_today_missing_means_zero():
    days = _days([1, 1, 1], start="2024-05-01")
    result = calculate_streaks(days, 2024, today=date(2024, 6, 1))
    assert result.current_streak == 0
    assert result.longest_streak == 3


def test_current_streak_never_exceeds_longest():
    days = _days([1, 0, 1, 1, 1, 1, 0, 1, 1])
    result = calculate_streaks(days, 2023, today=date(2025, 1, 1))
    assert result.current_streak <= result.longest_streak
    assert (result.longest_streak, result.current_streak) == (4, 2)


# ---------------------------------------------------------------------------
# analyze_activity_time
# ---------------------------------------------------------------------------


def test_no_events_is_balanced_with_uniform_distribution():
    result = analyze_activity_time([])
    assert result.archetype == BALANCED
    assert result.peak_hour == 12
    assert result.label == "All-Day Coder"
    assert len(result.distribution) == 24
    assert all(v == pytest.approx(100 / 24) for v in result.distribution)


def test_night_owl():
    events = [_at(h) for h in (23, 0, 1, 2, 2, 2)] + [_at(10), _at(19)]
    result = analyze_activity_time(events)
    assert result.archetype == NIGHT_OWL
    assert result.label == "Night Owl"
    assert result.peak_hour == 2


@pytest.mark.parametrize(
    "hours, archetype, label",
    [
        ([5, 6, 7, 7, 8, 13], EARLY_BIRD, "Early Bird"),
        ([9, 10, 11, 14, 16, 20], BUSINESS_HOURS, "9-to-5 Coder"),
        ([18, 19, 20, 21, 21, 3], EVENING_CODER, "Evening Coder"),
    ],
)
def test_other_archetypes(hours, archetype, label):
    result = analyze_activity_time([_at(h) for h in hours])
    assert result.archetype == archetype
    assert result.label == label


def test_tied_top_buckets_are_balanced():
    """Two buckets with equal 50% shares: neither is a strict maximum."""
    events = [_at(1), _at(2), _at(10), _at(11)]
    assert analyze_activity_time(events).archetype == BALANCED


def test_no_bucket_above_threshold_is_balanced():
    """Four buckets at 25% each: none exceeds 30%."""
    events = [_at(1), _at(5), _at(12), _at(19)]
    assert analyze_activity_time(events).archetype == BALANCED


def test_peak_hour_tie_takes_lowest_hour():
    result = analyze_activity_time([_at(15), _at(4), _at(15), _at(4)])
    assert result.peak_hour == 4


def test_distribution_whole_percentages():
    result = analyze_activity_time([_at(1), _at(1), _at(13)])
    assert result.distribution[1] == 67
    assert result.distribution[13] == 33
    assert sum(result.distribution) == 100


def test_timestamps_are_bucketed_in_utc():
    """09:30 at UTC+9 is 00:30 UTC."""
    counts = hourly_counts(["2024-03-01T09:30:00+09:00", "2024-03-01T00:10:00Z"])
    assert counts[0] == 2
    assert counts.sum() == 2


def test_naive_datetimes_are_utc():
    counts = hourly_counts([datetime(2024, 3, 1, 22, 0)])
    assert counts[22] == 1


# ---------------------------------------------------------------------------
# calendar_to_dataframe
# ---------------------------------------------------------------------------


def test_calendar_to_dataframe_sorted_by_date():
    days = list(reversed(_days([3, 0, 5])))
    df = calendar_to_dataframe(days)
    assert list(df["contribution_count"]) == [3, 0, 5]
    assert df["date"].is_monotonic_increasing


def test_calendar_to_dataframe_empty():
    df = calendar_to_dataframe([])
    assert df.empty
    assert list(df.columns) == ["date", "contribution_count"]
