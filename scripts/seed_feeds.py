"""Add RSS feeds to the database."""

from __future__ import annotations

import argparse
import asyncio

from src.feedtools.config import get_settings
from src.feedtools.storage import crud
from src.feedtools.storage.db import async_session_factory, init_db


async def seed(name: str, url: str, category: str, inactive: bool) -> None:
    await init_db()
    async with async_session_factory() as session:
        existing = await crud.get_feed_by_name(session, name)
        if existing:
            print(f"Feed already exists: {name} ({existing.url})")
            return
        feed = await crud.add_feed(session, name=name, url=url, category=category, is_active=not inactive)
        await session.commit()
    print(f"✅ Added RSS feed: {name} (ID: {feed.id})")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Register an RSS feed")
    parser.add_argument("--name", required=True, help="Unique feed name")
    parser.add_argument("--url", required=True, help="Feed URL")
    parser.add_argument("--category", default=get_settings().default_category, help="Feed category")
    parser.add_argument("--inactive", action="store_true", help="Store the feed as inactive")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(seed(args.name, args.url, args.category, args.inactive))


if __name__ == "__main__":
    main()
