"""Command line entrypoint: ``feedtools rss ...`` and ``feedtools vectorstore ...``."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional, Sequence

from .config import get_settings
from .ingest.loader import (
    FeedConfig,
    RSSLoader,
    group_by_source,
    load_from_database,
    load_multiple,
    sort_newest_first,
)
from .ingest.rss import RSSClient
from .logs import configure_logging
from .storage import crud
from .storage.db import async_session_factory, init_db
from .vectorstore.service import VectorStoreService


logger = logging.getLogger("feedtools.cli")

PROG = "feedtools"
VERSION = "1.0.0"

RSS_COMMANDS = [
    ("load", "Load a single RSS feed"),
    ("load-multiple", "Load multiple RSS feeds"),
    ("load-feeds", "Load specific feeds by name"),
    ("list", "List all available feeds"),
    ("test", "Test RSS feed connectivity"),
]

VECTORSTORE_COMMANDS = [
    ("init", "Initialize the vector store"),
    ("add", "Add articles to vector store"),
    ("search", "Search for similar articles"),
    ("stats", "Get vector store statistics"),
]


def command_listing(title: str, group: str, commands: Sequence[tuple[str, str]]) -> str:
    lines = [f"Available {title} commands:"]
    lines.extend(f"  {name} - {description}" for name, description in commands)
    lines.append(f"\nUse: {PROG} {group} <command> --help for more info")
    return "\n".join(lines)


# rss commands


async def rss_load(args: argparse.Namespace) -> None:
    await init_db()
    config = FeedConfig(
        name=args.name,
        url=args.url,
        category=args.category,
        max_items=args.max_items,
        timeout=args.timeout,
        stop_at_duplicate=args.stop_at_duplicate,
    )
    print(f"🚀 Loading RSS feed: {config.name}")
    print(f"📡 URL: {config.url}")
    print(f"📊 Max items: {config.max_items}")
    print(f"💾 Save to DB: {args.save}")

    documents = await RSSLoader(config, save=args.save).aload()
    print(f"\n✅ Successfully loaded {len(documents)} documents")
    if documents:
        sample = documents[0]
        print("\n📄 Sample document:")
        print(f"Title: {sample.metadata['title']}")
        print(f"Source: {sample.metadata['source']}")
        print(f"URL: {sample.metadata['url']}")
        print(f"Content preview: {sample.page_content[:200]}...")


async def rss_load_multiple(args: argparse.Namespace) -> None:
    await init_db()
    suffix = f" for category: {args.category}" if args.category else ""
    print(f"🚀 Loading RSS feeds{suffix}")
    print(f"💾 Save to DB: {args.save}")

    documents = await load_from_database(args.category, save=args.save)
    print(f"\n✅ Successfully loaded {len(documents)} documents from all feeds")
    _print_by_source(documents)


async def rss_load_feeds(args: argparse.Namespace) -> None:
    await init_db()
    print(f"🚀 Loading specific feeds: {', '.join(args.names)}")
    print(f"💾 Save to DB: {args.save}")

    async with async_session_factory() as session:
        feeds = await crud.get_active_feeds_by_names(session, args.names)
    if not feeds:
        print("❌ No active feeds found with the specified names")
        return

    print(f"📡 Found {len(feeds)} feeds to load")
    documents = await load_multiple([FeedConfig.from_record(feed) for feed in feeds], save=args.save)
    print(f"\n✅ Successfully loaded {len(documents)} documents")
    _print_by_source(documents)


async def rss_list(args: argparse.Namespace) -> None:
    await init_db()
    async with async_session_factory() as session:
        feeds = await crud.list_feeds(session, category=args.category, active_only=not args.all)
    if not feeds:
        print("❌ No feeds found")
        return

    print(f"📡 Found {len(feeds)} RSS feeds:")
    current_category = None
    for feed in feeds:
        if feed.category != current_category:
            print(f"\n📂 {feed.category}:")
            current_category = feed.category
        status = "✅" if feed.is_active else "❌"
        fetched = f"(Last: {feed.last_fetched:%Y-%m-%d})" if feed.last_fetched else "(Never fetched)"
        print(f"  {status} {feed.name}")
        print(f"     URL: {feed.url}")
        print(f"     {fetched}")


async def rss_test(args: argparse.Namespace) -> None:
    print(f"🧪 Testing RSS feed: {args.url}")
    entries = await RSSClient(args.url, name="Test Feed").fetch_entries()
    entries = sort_newest_first(entries)[:5]

    print("\n✅ Test successful!")
    print(f"📊 Found {len(entries)} articles")
    if entries:
        print("\n📄 Sample articles:")
        for index, entry in enumerate(entries[:3], start=1):
            published = entry.published.isoformat() if entry.published else "unknown"
            print(f"\n{index}. {entry.title}")
            print(f"   URL: {entry.link}")
            print(f"   Published: {published}")
            print(f"   Content preview: {entry.content[:150]}...")


def _print_by_source(documents) -> None:
    print("\n📊 Documents by source:")
    for source, count in group_by_source(documents).items():
        print(f"  {source}: {count} documents")


# vectorstore commands


async def _vectorstore_service() -> VectorStoreService:
    await init_db()
    service = VectorStoreService()
    await service.initialize()
    return service


async def vectorstore_init(args: argparse.Namespace) -> None:
    await _vectorstore_service()
    print("✅ Vector store initialized successfully")


async def vectorstore_add(args: argparse.Namespace) -> None:
    service = await _vectorstore_service()
    added = await service.add_articles(args.limit)
    print(f"✅ Added {added} articles to vector store")


async def vectorstore_search(args: argparse.Namespace) -> None:
    service = await _vectorstore_service()
    results = await service.search(args.query, args.limit)
    print(f'\n🔍 Search results for: "{args.query}"')
    print(f"Found {len(results)} similar articles")
    for index, (doc, score) in enumerate(results, start=1):
        print(f"\n{index}. {doc.metadata.get('title', '(untitled)')} [{score:.3f}]")
        if doc.metadata.get("url"):
            print(f"   URL: {doc.metadata['url']}")


async def vectorstore_stats(args: argparse.Namespace) -> None:
    service = await _vectorstore_service()
    stats = await service.stats()
    print("📊 Vector Store Statistics:")
    print(f"   Total documents: {stats.total_documents}")
    print(f"   Recent documents (24h): {stats.recent_documents}")
    print(f"   Average documents per day: {stats.average_documents_per_day}")


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog=PROG, description="Feed Tools - RSS Loader and Vector Store")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    groups = parser.add_subparsers(dest="group", metavar="{rss,vectorstore}")

    rss = groups.add_parser("rss", help="RSS loader commands")
    rss.set_defaults(listing=command_listing("RSS", "rss", RSS_COMMANDS))
    rss_commands = rss.add_subparsers(dest="command", metavar="command")

    load = rss_commands.add_parser("load", help="Load a single RSS feed")
    load.add_argument("-u", "--url", required=True, help="RSS feed URL")
    load.add_argument("-n", "--name", required=True, help="Feed name")
    load.add_argument("-c", "--category", default=settings.default_category, help="Feed category")
    load.add_argument("-m", "--max-items", type=int, default=50, help="Maximum items to load")
    load.add_argument(
        "-t", "--timeout", type=float, default=settings.feed_timeout_seconds, help="Request timeout in seconds"
    )
    load.add_argument(
        "--save", action=argparse.BooleanOptionalAction, default=False, help="Save articles to database"
    )
    load.add_argument(
        "--stop-at-duplicate",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Stop processing at the first article already stored",
    )
    load.set_defaults(handler=rss_load)

    load_many = rss_commands.add_parser("load-multiple", help="Load multiple RSS feeds from the database")
    load_many.add_argument("-c", "--category", default=None, help="Load feeds by category")
    load_many.add_argument(
        "--save", action=argparse.BooleanOptionalAction, default=False, help="Save articles to database"
    )
    load_many.set_defaults(handler=rss_load_multiple)

    load_feeds = rss_commands.add_parser("load-feeds", help="Load specific RSS feeds by name")
    load_feeds.add_argument("names", nargs="+", help="Feed names to load")
    load_feeds.add_argument(
        "--save", action=argparse.BooleanOptionalAction, default=False, help="Save articles to database"
    )
    load_feeds.set_defaults(handler=rss_load_feeds)

    list_cmd = rss_commands.add_parser("list", help="List RSS feeds")
    list_cmd.add_argument("-c", "--category", default=None, help="Filter by category")
    list_cmd.add_argument("--all", action="store_true", help="Include inactive feeds")
    list_cmd.set_defaults(handler=rss_list)

    test = rss_commands.add_parser("test", help="Test RSS feed connectivity and parsing")
    test.add_argument("-u", "--url", required=True, help="RSS feed URL to test")
    test.set_defaults(handler=rss_test)

    vectorstore = groups.add_parser("vectorstore", help="Vector store commands")
    vectorstore.set_defaults(
        listing=command_listing("vector store", "vectorstore", VECTORSTORE_COMMANDS)
    )
    vs_commands = vectorstore.add_subparsers(dest="command", metavar="command")

    vs_init = vs_commands.add_parser("init", help="Initialize the vector store")
    vs_init.set_defaults(handler=vectorstore_init)

    vs_add = vs_commands.add_parser("add", help="Add articles to vector store")
    vs_add.add_argument("-l", "--limit", type=int, default=100, help="Maximum articles to add")
    vs_add.set_defaults(handler=vectorstore_add)

    vs_search = vs_commands.add_parser("search", help="Search for similar articles")
    vs_search.add_argument("query", help="Search query")
    vs_search.add_argument("-k", "--limit", type=int, default=5, help="Number of results to return")
    vs_search.set_defaults(handler=vectorstore_search)

    vs_stats = vs_commands.add_parser("stats", help="Get vector store statistics")
    vs_stats.set_defaults(handler=vectorstore_stats)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.group is None:
        parser.print_help()
        return 0

    handler = getattr(args, "handler", None)
    if handler is None:
        print(args.listing)
        return 0

    configure_logging(args.log_level)
    try:
        asyncio.run(handler(args))
    except Exception as exc:
        logger.error("%s %s failed: %s", args.group, args.command, exc, exc_info=True)
        print(f"❌ Error running {args.group} {args.command}: {exc}")
        return 1
    return 0


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
