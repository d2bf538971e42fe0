"""
gh_insights.metrics — Pure analytics over fetched records.

Modules:
    contributors   — Per-identity aggregation, contribution score, dense ranks.
    temporal       — Contribution streaks and activity-time archetypes.
    insight_score  — Weighted Insight Score and rank tiers.
    badges         — Data-driven badge families (exclusive / additive).

No module here performs I/O. All weights and thresholds live in
gh_insights.config.InsightsConfig.
"""
