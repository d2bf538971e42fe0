"""
gh_insights — GitHub analytics core: resilient API access, contributor
ranking, temporal analytics, Insight Scores and achievement badges.

Subpackages:
- gh_insights.ingestion: GitHub client, retry / rate-limit handling, commit
  history pagination, repository and user fetches.
- gh_insights.metrics: contributor aggregation, streaks and activity time,
  Insight Score, badge engine.

gh_insights.pipeline ties them together; gh_insights.cli exposes them as
the ``gh-insights`` command.
"""

__version__ = "0.1.0"
