"""Check every RSS feed stored in the database and report which ones parse."""

from __future__ import annotations

import argparse
import asyncio
import logging

from src.feedtools.config import get_settings
from src.feedtools.ingest.health import run_feed_check
from src.feedtools.logs import configure_logging
from src.feedtools.storage.db import async_session_factory, init_db


logger = logging.getLogger("feedtools.scripts.check_rss_feeds")


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Test connectivity and parsing of all stored RSS feeds")
    parser.add_argument(
        "--delay",
        type=float,
        default=settings.feed_check_delay_seconds,
        help="Seconds to wait after each feed",
    )
    parser.add_argument(
        "--highlight",
        default=settings.highlight_marker,
        help="List feeds whose name contains this text separately",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging(args.log_level)
    try:
        asyncio.run(
            run_feed_check(
                async_session_factory,
                init=init_db,
                delay=args.delay,
                highlight=args.highlight or None,
            )
        )
    except Exception as exc:
        logger.error("Error testing RSS feeds: %s", exc, exc_info=True)
        print(f"❌ Error testing RSS feeds: {exc}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
