"""
GitHub API error types and the failure classifier.

Every failure raised by the ingestion layer is a GitHubAPIError (or one of
its subclasses). classify_error() decides whether a failure is worth
retrying: only rate-limit failures are, everything else is fatal unless the
raiser explicitly marked it transient.
"""
import enum
from typing import Optional

# Substrings that identify a primary or secondary rate-limit response.
_RATE_LIMIT_PHRASES = ("rate limit", "secondary rate limit", "abuse detection")


class ErrorClass(enum.Enum):
    """Retry classification for an upstream failure."""

    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


class GitHubAPIError(RuntimeError):
    """A failed call to the GitHub REST or GraphQL API.

    Args:
        message: Human-readable description (GraphQL error text included).
        status: HTTP status code, or None for network / GraphQL-level errors.
        transient: Set by the raiser to request a retry regardless of status.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.transient = transient


class GitHubRateLimitError(GitHubAPIError):
    """Primary or secondary rate limit exhausted."""

    def __init__(
        self,
        message: str = "GitHub API rate limit exceeded",
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message, status=status)


class GitHubNotFoundError(GitHubAPIError):
    """The requested user, repository or resource does not exist."""

    def __init__(self, message: str = "Resource not found", status: int = 404) -> None:
        super().__init__(message, status=status)


def is_rate_limit_message(message: str, status: Optional[int] = None) -> bool:
    """Return True if ``message`` carries rate-limit vocabulary.

    The bare "limit" + "403" pairing only counts when the status is 403 or
    unknown; GraphQL transport errors arrive as text without a status.
    """
    text = (message or "").lower()
    if any(phrase in text for phrase in _RATE_LIMIT_PHRASES):
        return status in (None, 403, 429)
    if "limit" in text and "403" in text:
        return status in (None, 403)
    return False


def classify_error(error: BaseException) -> ErrorClass:
    """Classify ``error`` as RATE_LIMITED, TRANSIENT or FATAL.

    Rules:
        - GitHubRateLimitError or HTTP 429 → RATE_LIMITED
        - HTTP 403 (or no status) with rate-limit wording → RATE_LIMITED
        - GitHubAPIError(transient=True) → TRANSIENT
        - anything else, network errors included → FATAL
    """
    if isinstance(error, GitHubRateLimitError):
        return ErrorClass.RATE_LIMITED

    status = getattr(error, "status", None)
    if status == 429:
        return ErrorClass.RATE_LIMITED
    if status in (None, 403) and is_rate_limit_message(str(error), status):
        return ErrorClass.RATE_LIMITED

    if getattr(error, "transient", False):
        return ErrorClass.TRANSIENT
    return ErrorClass.FATAL
