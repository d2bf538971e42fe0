"""
Unit tests for gh_insights.ingestion.commits — adaptive caps, cursor
pagination, page spacing and per-page rate-limit retry.
"""
import math
from datetime import datetime, timezone

import pytest

from gh_insights.ingestion.commits import (
    UNKNOWN_IDENTITY,
    commit_from_node,
    fetch_commit_history,
    max_commits_for,
    resolve_identity,
    since_timestamp,
)
from gh_insights.ingestion.errors import GitHubAPIError, GitHubRateLimitError


def _paged_handler(total, history_page, commit_node):
    """GraphQL handler serving ``total`` commits in pages of the requested size."""
    state = {"served": 0}

    def handler(query, variables):
        first = variables["first"]
        start = state["served"]
        count = min(first, total - start)
        nodes = [commit_node(login=f"user{(start + i) % 7}") for i in range(count)]
        state["served"] += count
        more = state["served"] < total
        return history_page(nodes, has_next_page=more, end_cursor=f"c{state['served']}")

    return handler


# ---------------------------------------------------------------------------
# max_commits_for
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "authenticated, days, expected",
    [
        (True, None, 3000),
        (True, 1, 500),
        (True, 7, 500),
        (True, 8, 2000),
        (True, 30, 2000),
        (True, 90, 3000),
        (True, 365, 3000),
        (True, 366, 5000),
        (False, None, 300),
        (False, 7, 200),
        (False, 8, 300),
        (False, 3650, 300),
    ],
)
def test_max_commits_table(authenticated, days, expected):
    assert max_commits_for(authenticated, days) == expected


# ---------------------------------------------------------------------------
# Identity resolution
# ---------------------------------------------------------------------------


def test_resolve_identity_prefers_login():
    identity = resolve_identity("octocat", "The Octocat")
    assert identity.key == "octocat"
    assert identity.from_login


def test_resolve_identity_falls_back_to_name():
    identity = resolve_identity(None, "Jane Doe")
    assert identity.key == "Jane Doe"
    assert not identity.from_login


def test_resolve_identity_unknown_placeholder_is_none():
    assert resolve_identity(None, UNKNOWN_IDENTITY) is None
    assert resolve_identity("", "") is None


def test_commit_from_node_without_linked_user(commit_node):
    record = commit_from_node(commit_node(login=None, name="Local Dev"))
    assert record.author.login is None
    assert record.identity.key == "Local Dev"


def test_since_timestamp_format():
    now = datetime(2024, 3, 31, 12, 30, 5, tzinfo=timezone.utc)
    assert since_timestamp(30, now) == "2024-03-01T12:30:05Z"
    assert since_timestamp(None, now) is None


# ---------------------------------------------------------------------------
# fetch_commit_history
# ---------------------------------------------------------------------------


def test_single_page_repository(make_client, history_page, commit_node, sleeps, record_sleep):
    client = make_client(graphql=[history_page([commit_node(), commit_node(login="bob")])])
    commits = fetch_commit_history(client, "o", "r", days=30, sleep=record_sleep)
    assert [c.author.login for c in commits] == ["alice", "bob"]
    assert len(client.graphql_calls) == 1
    assert sleeps == []


def test_pagination_respects_cap_and_page_count(make_client, history_page, commit_node, sleeps, record_sleep):
    """Unauthenticated, 7 days: cap 200 → at most 2 requests of 100, 200 records."""
    client = make_client(
        graphql=_paged_handler(1000, history_page, commit_node), authenticated=False
    )
    commits = fetch_commit_history(client, "o", "r", days=7, sleep=record_sleep)
    cap = max_commits_for(False, 7)
    assert len(commits) == cap == 200
    assert len(client.graphql_calls) == math.ceil(cap / 100)
    assert sleeps == [0.1]


def test_last_page_requests_only_remaining_budget(make_client, history_page, commit_node, record_sleep):
    """Cap 300 unauthenticated: page sizes 100, 100, 100; never more than needed."""
    client = make_client(
        graphql=_paged_handler(10_000, history_page, commit_node), authenticated=False
    )
    commits = fetch_commit_history(client, "o", "r", days=None, sleep=record_sleep)
    assert len(commits) == 300
    assert [v["first"] for _, v in client.graphql_calls] == [100, 100, 100]


def test_cursor_is_forwarded(make_client, history_page, commit_node, record_sleep):
    client = make_client(
        graphql=_paged_handler(150, history_page, commit_node), authenticated=True
    )
    commits = fetch_commit_history(client, "o", "r", days=30, sleep=record_sleep)
    assert len(commits) == 150
    cursors = [v["after"] for _, v in client.graphql_calls]
    assert cursors == [None, "c100"]


def test_page_delay_between_every_page(make_client, history_page, commit_node, sleeps, record_sleep):
    client = make_client(graphql=_paged_handler(450, history_page, commit_node))
    fetch_commit_history(client, "o", "r", days=30, sleep=record_sleep)
    assert len(client.graphql_calls) == 5
    assert sleeps == [0.1] * 4


def test_oversized_page_is_trimmed(make_client, history_page, commit_node, record_sleep):
    """A server returning more nodes than asked never pushes past the cap."""
    nodes = [commit_node() for _ in range(250)]
    client = make_client(graphql=[history_page(nodes, has_next_page=True, end_cursor="x")] * 3,
                         authenticated=False)
    commits = fetch_commit_history(client, "o", "r", days=7, sleep=record_sleep)
    assert len(commits) == 200


def test_since_variable_sent_for_window(make_client, history_page, record_sleep):
    client = make_client(graphql=[history_page([])])
    now = datetime(2024, 1, 31, tzinfo=timezone.utc)
    fetch_commit_history(client, "o", "r", days=30, sleep=record_sleep, now=now)
    assert client.graphql_calls[0][1]["since"] == "2024-01-01T00:00:00Z"


def test_unbounded_sends_null_since(make_client, history_page, record_sleep):
    client = make_client(graphql=[history_page([])])
    fetch_commit_history(client, "o", "r", days=None, sleep=record_sleep)
    assert client.graphql_calls[0][1]["since"] is None


def test_empty_repository_returns_empty_list(make_client, record_sleep):
    """No default branch → [] without error."""
    client = make_client(graphql=[{"repository": {"defaultBranchRef": None}}])
    assert fetch_commit_history(client, "o", "r", sleep=record_sleep) == []


def test_rate_limited_page_is_retried(make_client, history_page, commit_node, sleeps, record_sleep):
    client = make_client(graphql=[
        GitHubRateLimitError(),
        GitHubRateLimitError(),
        history_page([commit_node()]),
    ])
    commits = fetch_commit_history(client, "o", "r", sleep=record_sleep)
    assert len(commits) == 1
    assert sleeps == [1.0, 2.0]


def test_rate_limit_exhaustion_propagates(make_client, sleeps, record_sleep):
    client = make_client(graphql=[GitHubRateLimitError()] * 3)
    with pytest.raises(GitHubRateLimitError):
        fetch_commit_history(client, "o", "r", sleep=record_sleep)
    assert len(client.graphql_calls) == 3


def test_fatal_error_on_later_page_discards_partial_results(make_client, history_page, commit_node, record_sleep):
    """A non-rate-limit failure mid-walk raises; no partial list escapes."""
    client = make_client(graphql=[
        history_page([commit_node() for _ in range(100)], has_next_page=True, end_cursor="c1"),
        GitHubAPIError("Something went wrong", status=502),
    ])
    with pytest.raises(GitHubAPIError, match="Something went wrong"):
        fetch_commit_history(client, "o", "r", sleep=record_sleep)
    assert len(client.graphql_calls) == 2


def test_short_pages_never_exceed_request_ceiling(make_client, history_page, commit_node, record_sleep):
    """Cap 300 unauthenticated: 50-node pages stop after ceil(300/100) = 3 requests."""
    client = make_client(
        graphql=lambda query, variables: history_page(
            [commit_node() for _ in range(50)], has_next_page=True, end_cursor="more"
        ),
        authenticated=False,
    )
    commits = fetch_commit_history(client, "o", "r", days=None, sleep=record_sleep)
    assert len(client.graphql_calls) == 3
    assert len(commits) == 150


def test_empty_page_with_next_flag_ends_walk(make_client, history_page, commit_node, record_sleep):
    """A page with no nodes does not advance the cursor, so paging stops."""
    client = make_client(graphql=[
        history_page([commit_node() for _ in range(100)], has_next_page=True, end_cursor="c1"),
        history_page([], has_next_page=True, end_cursor="c1"),
    ])
    commits = fetch_commit_history(client, "o", "r", days=30, sleep=record_sleep)
    assert len(commits) == 100
    assert len(client.graphql_calls) == 2
