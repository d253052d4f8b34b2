"""Command line front end printing ranked completions for a query."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from .completion.models import Candidate
from .completion.service import CompletionEngine
from .completion.store import FileStore
from .config import AppConfig, load_config
from .connections import profile_from_config, provider_for_profile

LOG = logging.getLogger(__name__)

DEFAULT_DATABASE = "public"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlsense",
        description="Print context-aware completions for partial SQL.",
    )
    parser.add_argument("query", help="Partial SQL text")
    parser.add_argument("--cursor", type=int, default=None, help="Cursor offset (defaults to end of query)")
    parser.add_argument("--database", default=None, help="Current database or schema")
    parser.add_argument("--profile", default=None, help="Connection profile name from config.toml")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of suggestions")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


async def suggest(
    config: AppConfig,
    query: str,
    *,
    cursor: int | None = None,
    database: str | None = None,
    profile_name: str | None = None,
) -> list[Candidate]:
    """Complete ``query`` against the selected profile's metadata."""

    profile_config = config.profile(profile_name)
    if profile_config is None:
        raise LookupError(f"Unknown profile '{profile_name}'")
    profile = profile_from_config(profile_config)
    engine = CompletionEngine.from_settings(
        config.completion,
        provider_for_profile(profile),
        store=FileStore(config.state_dir),
        connection_id=profile.connection_id,
        database=database or DEFAULT_DATABASE,
    )
    engine.load_state()
    return await engine.complete(query, cursor)


def format_candidate(candidate: Candidate) -> str:
    return f"{candidate.kind.value:<10} {candidate.label:<40} {candidate.insert_text!r:<40} {candidate.score:8.1f}"


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run one completion and print the results."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config()
    if args.limit is not None:
        config = config.with_completion(max_results=max(1, args.limit))
    try:
        candidates = asyncio.run(
            suggest(
                config,
                args.query,
                cursor=args.cursor,
                database=args.database,
                profile_name=args.profile,
            )
        )
    except LookupError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    for candidate in candidates:
        print(format_candidate(candidate))
    LOG.debug("Printed suggestions", extra={"count": len(candidates)})
    return 0


__all__ = ["build_parser", "format_candidate", "main", "suggest"]
