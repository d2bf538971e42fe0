"""
gh_insights.ingestion — Everything that talks to the GitHub API.

Modules:
    errors      — Exception hierarchy and the rate-limit / transient / fatal classifier.
    client      — GitHubClient, with_retry, update_rate_limit, pacing helpers.
    commits     — Cursor-paginated default-branch history with adaptive caps.
    repository  — Repository metadata, stats, languages, contributor activity.
    user        — Profiles, repositories, events, search counts, contribution calendar.
"""
