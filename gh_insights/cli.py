"""
gh_insights/cli.py — Command-line interface for GitHub Insights.

Provides a single entry point that:
  1. Loads GITHUB_TOKEN from a .env file automatically
  2. Runs one of the analysis pipelines (repository, user, wrapped)
  3. Prints the result as JSON on stdout (logs go to stderr)

Usage:
    gh-insights repo OWNER/REPO [--days N | --all] [--csv PATH]
    gh-insights user USERNAME
    gh-insights wrapped USERNAME YEAR
    gh-insights rate-limit

All commands read GITHUB_TOKEN from .env in the repo root (or the path
specified by --env-file) before falling back to the environment variable.
Without a token the client runs unauthenticated (60 req/hr per IP).
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any


# ── GITHUB_TOKEN from .env ────────────────────────────────────────────────────

_LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s: %(message)s"


def _find_env_file() -> Path | None:
    """Nearest .env at or above the project root."""
    root = Path(__file__).resolve().parent.parent
    return next(
        (d / ".env" for d in (root, *root.parents) if (d / ".env").is_file()),
        None,
    )


def _parse_env_line(line: str) -> tuple[str, str] | None:
    """``KEY=value`` → (key, value) with one layer of matching quotes removed."""
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, _, value = (part.strip() for part in line.partition("="))
    if value[:1] in ("'", '"') and len(value) > 1 and value.endswith(value[0]):
        value = value[1:-1]
    return (key, value) if key else None


def _load_dotenv(env_file: str | None = None) -> dict[str, str]:
    """Export .env entries that are not already set; return the exported ones.

    Without ``env_file`` the nearest .env above the package is used. A
    missing file is not an error.
    """
    path = Path(env_file) if env_file else _find_env_file()
    if path is None or not path.is_file():
        return {}

    exported: dict[str, str] = {}
    for pair in map(_parse_env_line, path.read_text(encoding="utf-8").splitlines()):
        if pair is None or pair[0] in os.environ:
            continue
        os.environ[pair[0]] = exported[pair[0]] = pair[1]
    return exported


def _setup_logging(level: str = "INFO") -> None:
    """Log records go to stderr; stdout carries only the JSON result."""
    logging.basicConfig(
        level=logging.getLevelName(level.upper()),
        format=_LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


logger = logging.getLogger("gh_insights.cli")


# ── Output helpers ────────────────────────────────────────────────────────────

def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _emit(result: Any) -> None:
    json.dump(_to_jsonable(result), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def _client(args: argparse.Namespace):
    from gh_insights.ingestion.client import create_client

    token = args.token or os.environ.get("GITHUB_TOKEN")
    if not token:
        logger.warning(
            "GITHUB_TOKEN not set. Unauthenticated GitHub rate limit is 60 req/hr. "
            "Set it in .env or pass --token."
        )
    return create_client(token)


def _run(args: argparse.Namespace, action) -> int:
    """Run ``action`` and map API failures onto exit codes (2 not found, 3 rate limit, 1 other)."""
    from gh_insights.ingestion.errors import (
        GitHubAPIError,
        GitHubNotFoundError,
        GitHubRateLimitError,
    )

    try:
        return action()
    except GitHubNotFoundError as exc:
        logger.error("Not found: %s", exc)
        return 2
    except GitHubRateLimitError as exc:
        logger.error("Rate limit exceeded. Please try again later. (%s)", exc)
        return 3
    except GitHubAPIError as exc:
        logger.error("GitHub API error: %s", exc)
        return 1


# ── Subcommand: repo ──────────────────────────────────────────────────────────

def cmd_repo(args: argparse.Namespace) -> int:
    """Repository analysis: commits, ranked contributors, badges, languages."""
    _load_dotenv(args.env_file)
    _setup_logging(args.log_level)

    owner, sep, repo = args.repository.partition("/")
    if not sep or not owner or not repo:
        logger.error("Expected OWNER/REPO, got %r", args.repository)
        return 2

    from gh_insights.metrics.contributors import contributors_to_dataframe
    from gh_insights.pipeline import analyze_repository

    days = None if args.all else args.days
    client = _client(args)

    def action() -> int:
        t0 = time.monotonic()
        result = analyze_repository(client, owner, repo, days=days)
        logger.info("Done in %.1fs", time.monotonic() - t0)
        if args.csv:
            contributors_to_dataframe(result.contributors).to_csv(args.csv, index=False)
            logger.info("Contributor table written to %s", args.csv)
        _emit(result)
        return 0

    return _run(args, action)


# ── Subcommand: user ──────────────────────────────────────────────────────────

def cmd_user(args: argparse.Namespace) -> int:
    """Profile analysis: stats, Insight Score, activity time, badges."""
    _load_dotenv(args.env_file)
    _setup_logging(args.log_level)

    from gh_insights.pipeline import analyze_user

    client = _client(args)

    def action() -> int:
        _emit(analyze_user(client, args.username))
        return 0

    return _run(args, action)


# ── Subcommand: wrapped ───────────────────────────────────────────────────────

def cmd_wrapped(args: argparse.Namespace) -> int:
    """Yearly recap: contributions, streaks, languages, wrapped badges."""
    _load_dotenv(args.env_file)
    _setup_logging(args.log_level)

    from gh_insights.pipeline import InvalidYearError, analyze_wrapped

    client = _client(args)

    def action() -> int:
        try:
            result = analyze_wrapped(client, args.username, args.year)
        except InvalidYearError as exc:
            logger.error("%s", exc)
            return 2
        if args.csv:
            from gh_insights.metrics.temporal import calendar_to_dataframe

            calendar_to_dataframe(result.calendar.days).to_csv(args.csv, index=False)
            logger.info("Contribution calendar written to %s", args.csv)
        _emit(result)
        return 0

    return _run(args, action)


# ── Subcommand: rate-limit ────────────────────────────────────────────────────

def cmd_rate_limit(args: argparse.Namespace) -> int:
    """Probe and print the current GraphQL rate-limit budget."""
    _load_dotenv(args.env_file)
    _setup_logging(args.log_level)

    from gh_insights.ingestion.client import update_rate_limit

    client = _client(args)
    info = update_rate_limit(client, not client.authenticated)
    if info is None:
        logger.error("Could not read the rate limit (see --log-level DEBUG)")
        return 1

    print(f"  Mode      : {'authenticated' if client.authenticated else 'unauthenticated'}")
    print(f"  Limit     : {info.limit}")
    print(f"  Remaining : {info.remaining}")
    print(f"  Used      : {info.used}")
    print(f"  Resets at : {info.reset_at.isoformat()}")
    return 0


# ── Parser ────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gh-insights",
        description="GitHub Insights: contributor rankings, Insight Scores, streaks and badges",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_flags(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--token",
            default=None,
            metavar="TOKEN",
            help="GitHub access token (default: GITHUB_TOKEN from .env or environment)",
        )
        p.add_argument(
            "--env-file",
            default=None,
            metavar="PATH",
            help="Path to .env file (default: search upward from the repo root)",
        )
        p.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR"],
            help="Logging verbosity (default: INFO)",
        )

    # repo
    p_repo = subparsers.add_parser(
        "repo",
        help="Analyze a repository: commits → contributors → badges",
    )
    add_common_flags(p_repo)
    p_repo.add_argument("repository", metavar="OWNER/REPO")
    window = p_repo.add_mutually_exclusive_group()
    window.add_argument(
        "--days",
        type=int,
        default=30,
        metavar="N",
        help="Look-back window for the commit history (default: 30)",
    )
    window.add_argument(
        "--all",
        action="store_true",
        help="Whole history (subject to the commit cap)",
    )
    p_repo.add_argument(
        "--csv", default=None, metavar="PATH",
        help="Also write the ranked contributor table as CSV",
    )
    p_repo.set_defaults(func=cmd_repo)

    # user
    p_user = subparsers.add_parser(
        "user",
        help="Analyze a user profile: Insight Score, activity time, badges",
    )
    add_common_flags(p_user)
    p_user.add_argument("username", metavar="USERNAME")
    p_user.set_defaults(func=cmd_user)

    # wrapped
    p_wrapped = subparsers.add_parser(
        "wrapped",
        help="Yearly recap for a user",
    )
    add_common_flags(p_wrapped)
    p_wrapped.add_argument("username", metavar="USERNAME")
    p_wrapped.add_argument("year", type=int, metavar="YEAR")
    p_wrapped.add_argument(
        "--csv", default=None, metavar="PATH",
        help="Also write the daily contribution calendar as CSV",
    )
    p_wrapped.set_defaults(func=cmd_wrapped)

    # rate-limit
    p_rate = subparsers.add_parser(
        "rate-limit",
        help="Show the remaining GraphQL rate-limit budget",
    )
    add_common_flags(p_rate)
    p_rate.set_defaults(func=cmd_rate_limit)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
