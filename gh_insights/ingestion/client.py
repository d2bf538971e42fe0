"""
GitHub API client — dual-mode (token / anonymous) access with retry helpers.

Provides:
- GitHubClient: GraphQL + REST transport over urllib with the fixed header
  contract (Accept, User-Agent, Authorization only when a token is present)
  and conversion of HTTP failures into the errors.py hierarchy.
- with_retry(): sequential exponential-backoff retry for rate-limited calls.
- update_rate_limit(): best-effort rate-limit probe; unauthenticated results
  land in a shared, lock-guarded RateLimitState.
- RequestPacer / sequential_fetch(): spacing between outbound calls to stay
  clear of GitHub's secondary (abuse-detection) limits.

Uses only Python stdlib (urllib.request) for HTTP.
"""
import json
import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Sequence, TypeVar

from gh_insights.config import DEFAULT_CONFIG, InsightsConfig
from gh_insights.ingestion.errors import (
    ErrorClass,
    GitHubAPIError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    classify_error,
    is_rate_limit_message,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_QUERY = """
query {
  rateLimit {
    limit
    remaining
    resetAt
    used
  }
}
"""


@dataclass(frozen=True)
class RateLimitInfo:
    """Snapshot of the remaining GitHub call budget."""

    limit: int
    remaining: int
    reset_at: datetime
    used: int


class RateLimitState:
    """Process-wide holder for the unauthenticated rate-limit snapshot.

    Last writer wins. The value is advisory (UI warnings) and never gates a
    request, so a plain lock around get/set is all the coordination needed.
    Authenticated snapshots must not be stored here: they belong to a single
    credential and would leak across requests.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._info: Optional[RateLimitInfo] = None

    def get(self) -> Optional[RateLimitInfo]:
        with self._lock:
            return self._info

    def set(self, info: RateLimitInfo) -> None:
        with self._lock:
            self._info = info

    def clear(self) -> None:
        with self._lock:
            self._info = None


# Default state shared by every anonymous client in this process.
PUBLIC_RATE_LIMIT = RateLimitState()


def get_public_rate_limit_info() -> Optional[RateLimitInfo]:
    """Return the last unauthenticated rate-limit snapshot, if any."""
    return PUBLIC_RATE_LIMIT.get()


def _parse_iso8601(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class RequestPacer:
    """Leaky-bucket pacer: at most one call per ``min_interval`` seconds.

    Shared by every call a GitHubClient makes, so spacing holds no matter
    which fetcher issued the request.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Block until the next call is allowed, then record it."""
        if self._min_interval <= 0:
            return
        with self._lock:
            now = self._clock()
            if self._last_call is not None:
                elapsed = now - self._last_call
                if elapsed < self._min_interval:
                    self._sleep(self._min_interval - elapsed)
                    now = self._clock()
            self._last_call = now


class GitHubClient:
    """Synchronous GitHub API client for GraphQL and REST calls.

    A client without a token runs in unauthenticated mode: 60 REST req/hr
    per IP and a much smaller GraphQL budget. Errors are raised, never
    swallowed; callers decide which failures are tolerable.

    Args:
        token: GitHub access token, or None for anonymous access.
        config: InsightsConfig (endpoints, user agent, timeout, pacing).
        pacer: Optional RequestPacer; defaults to one built from
            config.min_request_interval_seconds.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        config: InsightsConfig = DEFAULT_CONFIG,
        pacer: Optional[RequestPacer] = None,
    ) -> None:
        self._token = (token or "").strip() or None
        self._config = config
        self._pacer = pacer or RequestPacer(config.min_request_interval_seconds)

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    @property
    def config(self) -> InsightsConfig:
        return self._config

    def _headers(self, accept: str) -> dict[str, str]:
        headers = {
            "Accept": accept,
            "User-Agent": self._config.user_agent,
            "X-GitHub-Api-Version": self._config.api_version,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _send(self, req: urllib.request.Request) -> tuple[Any, Any]:
        """Perform ``req`` and return (parsed JSON body, response headers)."""
        self._pacer.wait()
        try:
            with urllib.request.urlopen(req, timeout=self._config.request_timeout_seconds) as resp:
                body = resp.read()
                headers = resp.headers
        except urllib.error.HTTPError as exc:
            raise self._http_error(exc, req.full_url) from exc
        except urllib.error.URLError as exc:
            raise GitHubAPIError(f"Network error on {req.full_url}: {exc.reason}") from exc
        except TimeoutError as exc:
            raise GitHubAPIError(f"Timed out on {req.full_url}") from exc

        try:
            return json.loads(body) if body else None, headers
        except ValueError as exc:
            raise GitHubAPIError(f"Invalid JSON from {req.full_url}") from exc

    @staticmethod
    def _http_error(exc: urllib.error.HTTPError, url: str) -> GitHubAPIError:
        try:
            text = exc.read().decode("utf-8", errors="replace")
        except OSError:
            text = ""
        message = f"HTTP {exc.code} on {url}: {text[:300]}"
        headers = exc.headers or {}

        if exc.code == 429:
            return GitHubRateLimitError(message, status=429)
        if exc.code == 403 and (
            headers.get("X-RateLimit-Remaining") == "0"
            or is_rate_limit_message(text, 403)
        ):
            return GitHubRateLimitError(message, status=403)
        if exc.code == 404:
            return GitHubNotFoundError(message)
        return GitHubAPIError(message, status=exc.code)

    def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        """Run a GraphQL query and return its ``data`` object.

        GraphQL reports most failures with HTTP 200 and an ``errors`` array;
        those are raised as GitHubRateLimitError (type RATE_LIMITED),
        GitHubNotFoundError (all errors NOT_FOUND) or GitHubAPIError.
        """
        payload = json.dumps({"query": query, "variables": variables or {}}).encode("utf-8")
        req = urllib.request.Request(
            self._config.graphql_url,
            data=payload,
            headers={**self._headers("application/json"), "Content-Type": "application/json"},
            method="POST",
        )
        data, _ = self._send(req)
        if not isinstance(data, dict):
            raise GitHubAPIError("Unexpected GraphQL response shape")

        errors = data.get("errors") or []
        if errors:
            types = [e.get("type", "") for e in errors if isinstance(e, dict)]
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors[:3]
            )
            if "RATE_LIMITED" in types:
                raise GitHubRateLimitError(f"GraphQL rate limit: {messages}")
            if types and all(t == "NOT_FOUND" for t in types):
                raise GitHubNotFoundError(messages)
            raise GitHubAPIError(f"GraphQL errors: {messages}")

        return data.get("data") or {}

    def get_response(self, path: str, params: Optional[dict] = None) -> tuple[Any, Any]:
        """GET a REST path (or full URL) and return (JSON body, headers)."""
        url = path if path.startswith("http") else f"{self._config.rest_api_base}{path}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params)}"
        req = urllib.request.Request(url, headers=self._headers("application/vnd.github+json"))
        return self._send(req)

    def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        """GET a REST path (or full URL) and return the parsed JSON body."""
        data, _ = self.get_response(path, params)
        return data


def create_client(token: Optional[str] = None, config: InsightsConfig = DEFAULT_CONFIG) -> GitHubClient:
    """Return an authenticated client when ``token`` is set, anonymous otherwise."""
    return GitHubClient(token=token, config=config)


def with_retry(
    operation: Callable[[], T],
    max_retries: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``operation`` with exponential backoff on rate-limit failures.

    ``operation`` runs at most ``max_retries`` times. After failed attempt i
    (0-based) that classifies as RATE_LIMITED or TRANSIENT, and while
    attempts remain, waits ``base_delay * 2**i`` seconds before trying again.
    A FATAL failure is re-raised immediately. When attempts run out the last
    error is re-raised.

    Args:
        operation: Zero-argument callable performing one API call.
        max_retries: Total attempt ceiling (first call included).
        base_delay: Delay in seconds before the first retry.
        sleep: Sleep function (injected by tests).

    Returns:
        Whatever ``operation`` returns on its first successful attempt.
    """
    attempts = max(1, max_retries)
    last_error: Optional[BaseException] = None

    for attempt in range(attempts):
        try:
            return operation()
        except Exception as exc:
            last_error = exc
            error_class = classify_error(exc)
            if error_class is ErrorClass.FATAL or attempt >= attempts - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "%s error (attempt %d/%d), retrying in %.1fs: %s",
                error_class.value, attempt + 1, attempts, delay, exc,
            )
            sleep(delay)

    # Unreachable: the loop either returns or raises.
    raise last_error  # type: ignore[misc]


def update_rate_limit(
    client: GitHubClient,
    is_unauthenticated: bool,
    state: RateLimitState = PUBLIC_RATE_LIMIT,
) -> Optional[RateLimitInfo]:
    """Probe the GraphQL rateLimit object and return the snapshot.

    When ``is_unauthenticated`` the snapshot also overwrites ``state``.
    Best effort: any failure is logged at DEBUG and returns None, leaving
    ``state`` untouched.
    """
    try:
        data = client.graphql(RATE_LIMIT_QUERY)
        raw = data["rateLimit"]
        info = RateLimitInfo(
            limit=int(raw["limit"]),
            remaining=int(raw["remaining"]),
            reset_at=_parse_iso8601(raw["resetAt"]),
            used=int(raw["used"]),
        )
    except Exception as exc:  # noqa: BLE001
        logger.debug("Rate-limit probe failed: %s", exc)
        return None

    if is_unauthenticated:
        state.set(info)
    return info


def sequential_fetch(
    tasks: Sequence[Callable[[], T]],
    delay: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> list[T]:
    """Run ``tasks`` one after another, pausing ``delay`` seconds between them.

    Replaces a concurrent gather: bursts of parallel calls trip GitHub's
    secondary rate limit. No pause precedes the first task. Errors propagate
    and stop the remaining tasks.
    """
    results: list[T] = []
    for index, task in enumerate(tasks):
        if index > 0 and delay > 0:
            sleep(delay)
        results.append(task())
    return results
