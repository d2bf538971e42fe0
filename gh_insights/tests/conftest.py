"""
gh_insights/tests/conftest.py — Shared pytest fixtures for the GitHub Insights test suite.

No test talks to the network except those marked ``integration``. API
access is replaced by FakeClient, a scripted stand-in that exposes the same
surface the fetchers use (``config``, ``authenticated``, ``graphql``,
``get_json``), and every sleep is captured instead of slept.

Fixtures:
    make_client     — Factory for FakeClient instances.
    sleeps          — List that records every requested sleep duration.
    record_sleep    — Sleep function appending to ``sleeps``.
    commit_node     — Factory for GraphQL commit history nodes.
    history_page    — Factory for one commit history response page.
    github_token    — GitHub token from GITHUB_TOKEN env var (or None).
"""

import os
from collections import deque

import pytest

from gh_insights.config import DEFAULT_CONFIG


# ── Pytest configuration hooks ────────────────────────────────────────────────

def pytest_configure(config):
    """Register custom markers and add --run-integration CLI option support."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that call the real GitHub API (deselected by default, "
        "pass --run-integration or -m integration to enable)",
    )


def pytest_addoption(parser):
    """Add --run-integration CLI flag to enable integration tests."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that call the real GitHub API.",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is passed or -m integration is used."""
    markexpr = config.getoption("-m", default="")
    if "integration" in markexpr:
        return

    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="Integration test -- pass --run-integration or -m integration to run"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ── Fake GitHub client ────────────────────────────────────────────────────────

class FakeClient:
    """Scripted GitHub client.

    ``graphql`` is either a list of responses consumed in call order or a
    handler ``(query, variables) -> response``. ``rest`` is either a dict
    mapping path → list of responses or a handler ``(path, params) ->
    response``. A response that is an exception instance is raised.
    """

    def __init__(self, graphql=None, rest=None, authenticated=True, config=DEFAULT_CONFIG):
        self.authenticated = authenticated
        self.config = config
        self._graphql = graphql if callable(graphql) else deque(graphql or [])
        self._rest = rest if callable(rest) else {k: deque(v) for k, v in (rest or {}).items()}
        self.graphql_calls: list[tuple[str, dict]] = []
        self.rest_calls: list[tuple[str, dict]] = []

    @staticmethod
    def _resolve(response):
        if isinstance(response, BaseException):
            raise response
        return response

    def graphql(self, query, variables=None):
        variables = dict(variables or {})
        self.graphql_calls.append((query, variables))
        if callable(self._graphql):
            return self._resolve(self._graphql(query, variables))
        if not self._graphql:
            raise AssertionError(f"Unexpected GraphQL call #{len(self.graphql_calls)}")
        return self._resolve(self._graphql.popleft())

    def get_json(self, path, params=None):
        params = dict(params or {})
        self.rest_calls.append((path, params))
        if callable(self._rest):
            return self._resolve(self._rest(path, params))
        queue = self._rest.get(path)
        if not queue:
            raise AssertionError(f"Unexpected REST call: {path} {params}")
        return self._resolve(queue.popleft())


@pytest.fixture
def make_client():
    """Return the FakeClient constructor."""
    return FakeClient


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def record_sleep(sleeps):
    return sleeps.append


# ── GraphQL payload builders ──────────────────────────────────────────────────

def _commit_node(login="alice", name=None, additions=10, deletions=2,
                 committed_date="2024-03-01T10:00:00Z", message="change"):
    return {
        "committedDate": committed_date,
        "author": {"name": name or login, "user": {"login": login} if login else None},
        "additions": additions,
        "deletions": deletions,
        "message": message,
    }


def _history_page(nodes, has_next_page=False, end_cursor=None):
    return {
        "repository": {
            "defaultBranchRef": {
                "target": {
                    "history": {
                        "pageInfo": {"hasNextPage": has_next_page, "endCursor": end_cursor},
                        "nodes": nodes,
                    }
                }
            }
        }
    }


@pytest.fixture
def commit_node():
    return _commit_node


@pytest.fixture
def history_page():
    return _history_page


@pytest.fixture(scope="session")
def github_token():
    """GitHub token from the environment, or None."""
    return os.environ.get("GITHUB_TOKEN") or None
