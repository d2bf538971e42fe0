"""
Unit tests for gh_insights.ingestion.repository — metadata, stats,
languages and contributor activity parsing.
"""
import pytest

from gh_insights.ingestion.client import RateLimitState
from gh_insights.ingestion.errors import (
    GitHubAPIError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)
from gh_insights.ingestion.repository import (
    fetch_contributor_activity,
    get_contributor_details,
    get_language_stats,
    get_repository,
    get_repository_stats,
)

REPO_NODE = {
    "id": "R_1",
    "name": "hello",
    "nameWithOwner": "octo/hello",
    "description": "demo",
    "url": "https://github.com/octo/hello",
    "isPrivate": False,
    "primaryLanguage": {"name": "Python", "color": "#3572A5"},
    "updatedAt": "2024-04-01T00:00:00Z",
    "stargazerCount": 12,
    "forkCount": 3,
}

RATE_LIMIT_PAYLOAD = {
    "rateLimit": {"limit": 60, "remaining": 50, "resetAt": "2024-05-01T12:00:00Z", "used": 10}
}


# ---------------------------------------------------------------------------
# get_repository
# ---------------------------------------------------------------------------


def test_get_repository_authenticated(make_client, record_sleep):
    client = make_client(graphql=[{"repository": REPO_NODE}])
    repo = get_repository(client, "octo", "hello", sleep=record_sleep)
    assert repo.name_with_owner == "octo/hello"
    assert repo.primary_language == "Python"
    assert repo.stargazer_count == 12
    assert len(client.graphql_calls) == 1


def test_get_repository_unauthenticated_refreshes_rate_limit(make_client, record_sleep):
    client = make_client(graphql=[{"repository": REPO_NODE}, RATE_LIMIT_PAYLOAD], authenticated=False)
    state = RateLimitState()
    get_repository(client, "octo", "hello", rate_limit_state=state, sleep=record_sleep)
    assert state.get().remaining == 50


def test_get_repository_missing_raises_not_found(make_client, record_sleep):
    client = make_client(graphql=[{"repository": None}])
    with pytest.raises(GitHubNotFoundError):
        get_repository(client, "octo", "nope", sleep=record_sleep)


def test_private_repository_refused_without_token(make_client, record_sleep):
    private = dict(REPO_NODE, isPrivate=True)
    client = make_client(graphql=[{"repository": private}, RATE_LIMIT_PAYLOAD], authenticated=False)
    with pytest.raises(GitHubAPIError) as excinfo:
        get_repository(client, "octo", "hello", rate_limit_state=RateLimitState(), sleep=record_sleep)
    assert excinfo.value.status == 403


def test_private_repository_allowed_with_token(make_client, record_sleep):
    client = make_client(graphql=[{"repository": dict(REPO_NODE, isPrivate=True)}])
    assert get_repository(client, "octo", "hello", sleep=record_sleep).is_private


def test_get_repository_retries_rate_limit(make_client, sleeps, record_sleep):
    client = make_client(graphql=[GitHubRateLimitError(), {"repository": REPO_NODE}])
    get_repository(client, "octo", "hello", sleep=record_sleep)
    assert sleeps == [1.0]


# ---------------------------------------------------------------------------
# Stats and languages
# ---------------------------------------------------------------------------


def test_get_repository_stats(make_client):
    client = make_client(graphql=[{
        "repository": {
            "name": "hello",
            "description": None,
            "stargazerCount": 5,
            "forkCount": 1,
            "watchers": {"totalCount": 4},
            "issues": {"totalCount": 9},
            "pullRequests": {"totalCount": 7},
            "defaultBranchRef": {"target": {"history": {"totalCount": 321}}},
        }
    }])
    stats = get_repository_stats(client, "octo", "hello")
    assert (stats.stars, stats.watchers, stats.issues, stats.pull_requests, stats.commits) == (5, 4, 9, 7, 321)


def test_get_repository_stats_empty_repo_has_zero_commits(make_client):
    client = make_client(graphql=[{"repository": {"name": "x", "defaultBranchRef": None}}])
    assert get_repository_stats(client, "o", "x").commits == 0


def test_language_percentages(make_client, record_sleep):
    client = make_client(graphql=[{
        "repository": {
            "languages": {
                "totalSize": 3000,
                "edges": [
                    {"size": 2000, "node": {"name": "Python", "color": "#3572A5"}},
                    {"size": 1000, "node": {"name": "Shell", "color": "#89e051"}},
                ],
            }
        }
    }])
    langs = get_language_stats(client, "o", "r", sleep=record_sleep)
    assert [(l.name, l.percentage) for l in langs] == [("Python", 66.7), ("Shell", 33.3)]


def test_language_stats_zero_total(make_client, record_sleep):
    client = make_client(graphql=[{"repository": {"languages": {"totalSize": 0, "edges": []}}}])
    assert get_language_stats(client, "o", "r", sleep=record_sleep) == []


# ---------------------------------------------------------------------------
# Contributor activity
# ---------------------------------------------------------------------------


ACTIVITY_PAYLOAD = {
    "repository": {
        "mentionableUsers": {"nodes": [
            {"login": "alice", "name": "Alice", "avatarUrl": "https://a"},
            {"login": "bob", "name": None, "avatarUrl": "https://b"},
        ]},
        "defaultBranchRef": {"target": {"history": {"nodes": [
            {"committedDate": "2024-01-01T00:00:00Z", "author": {"user": {"login": "alice"}, "name": "Alice"},
             "additions": 100, "deletions": 0, "message": "a"},
            {"committedDate": "2024-01-02T00:00:00Z", "author": {"user": None, "name": "Unknown"},
             "additions": 5, "deletions": 5, "message": "b"},
        ]}}},
        "pullRequests": {"nodes": [
            {"author": {"login": "bob"}, "merged": True,
             "reviews": {"nodes": [{"author": {"login": "alice"}}, {"author": {"login": "bob"}}]}},
            {"author": None, "merged": False, "reviews": {"nodes": []}},
        ]},
    }
}


def test_fetch_contributor_activity_parses_streams(make_client, record_sleep):
    client = make_client(graphql=[ACTIVITY_PAYLOAD])
    activity = fetch_contributor_activity(client, "o", "r", sleep=record_sleep)
    assert [u.login for u in activity.users] == ["alice", "bob"]
    assert len(activity.commits) == 2
    assert activity.pull_requests[0].reviewers == ("alice", "bob")
    assert activity.pull_requests[1].author is None


def test_get_contributor_details_ranks(make_client, record_sleep):
    """alice: 1 commit (10) + 100 additions (1) + 1 review (5) = 16; bob: 1 PR (20)."""
    client = make_client(graphql=[ACTIVITY_PAYLOAD])
    ranked = get_contributor_details(client, "o", "r", sleep=record_sleep)
    assert [(c.login, c.score, c.rank) for c in ranked] == [("bob", 20, 1), ("alice", 16, 2)]
    assert ranked[1].name == "Alice"
    assert ranked[0].name == "bob"
    assert ranked[0].reviews == 0
