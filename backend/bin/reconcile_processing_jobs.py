#!/usr/bin/env python3
"""Poll transcriptions stuck in processing after their dashboard session went away."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path


SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Poll stale processing transcriptions once so they reach a terminal state.",
    )
    parser.add_argument(
        "--older-than-minutes",
        type=int,
        default=30,
        help="Only jobs not updated for at least this many minutes (default 30).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List candidate jobs without calling the provider.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of jobs to poll.",
    )
    parser.add_argument(
        "--user-id",
        type=str,
        default=None,
        help="Optional user_id filter.",
    )
    return parser.parse_args(argv)


async def _run(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from vidscribe.config import Config
    from vidscribe.errors import ConfigurationError
    from vidscribe.services.container import AppServices
    from vidscribe.services.transcription_service import TranscriptionService

    if args.limit is not None and args.limit <= 0:
        print("--limit must be positive", file=sys.stderr)
        return 2

    try:
        services = AppServices.from_config(Config())
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 2

    await services.startup()
    try:
        async with services.database.session() as db:
            service = TranscriptionService(db, services.provider)
            summary = await service.reconcile_stale_jobs(
                older_than_minutes=args.older_than_minutes,
                user_id=(args.user_id or "").strip() or None,
                limit=args.limit,
                dry_run=bool(args.dry_run),
            )
    finally:
        await services.shutdown()

    summary["job_ids"] = summary["job_ids"][:25]
    print(json.dumps(summary, indent=2))
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
