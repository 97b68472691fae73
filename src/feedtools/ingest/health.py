"""Feed health check: fetch every configured feed once and report which ones parse."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional, Sequence

import feedparser

from ..storage import crud
from ..storage.models import RSSFeed
from .rss import RSSClient


logger = logging.getLogger("feedtools.health")

FeedFetcher = Callable[[str], Awaitable[feedparser.FeedParserDict]]


@dataclass(slots=True)
class FeedRecord:
    """Feed row copied out of the database."""

    id: int
    name: str
    url: str
    category: str
    is_active: bool

    @classmethod
    def from_model(cls, feed: RSSFeed) -> "FeedRecord":
        return cls(
            id=feed.id,
            name=feed.name,
            url=feed.url,
            category=feed.category,
            is_active=bool(feed.is_active),
        )


@dataclass(slots=True)
class WorkingFeed:
    feed: FeedRecord
    item_count: int
    sample_title: Optional[str] = None


@dataclass(slots=True)
class FailedFeed:
    feed: FeedRecord
    error: str


@dataclass(slots=True)
class FeedCheckReport:
    total: int
    working: list[WorkingFeed] = field(default_factory=list)
    failed: list[FailedFeed] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Percentage of working feeds, rounded to one decimal."""

        if not self.total:
            return 0.0
        return round(len(self.working) / self.total * 100, 1)

    def is_working(self, feed_id: int) -> bool:
        return any(item.feed.id == feed_id for item in self.working)


async def fetch_with_rss_client(url: str) -> feedparser.FeedParserDict:
    return await RSSClient(url).fetch()


async def check_feeds(
    feeds: Sequence[FeedRecord],
    *,
    fetch: FeedFetcher = fetch_with_rss_client,
    delay: float = 1.0,
    out: Callable[[str], None] = print,
) -> FeedCheckReport:
    """Fetch each feed in turn, recording successes and failures.

    A failing feed never aborts the pass. ``delay`` seconds are slept after
    every feed regardless of outcome.
    """

    report = FeedCheckReport(total=len(feeds))
    out(f"📡 Testing {len(feeds)} RSS feeds...\n")

    for feed in feeds:
        out(f"🔍 Testing: {feed.name}")
        out(f"   URL: {feed.url}")
        try:
            parsed = await fetch(feed.url)
            items = parsed.entries
            sample = items[0].get("title") if items else None
            out(f"   ✅ SUCCESS - Found {len(items)} items")
            if items:
                out(f"   📄 Sample: {sample or '(untitled)'}")
            report.working.append(WorkingFeed(feed=feed, item_count=len(items), sample_title=sample))
        except Exception as exc:
            logger.debug("Feed %s failed", feed.name, exc_info=True)
            out(f"   ❌ FAILED - {exc}")
            report.failed.append(FailedFeed(feed=feed, error=str(exc) or exc.__class__.__name__))
        out("")

        if delay:
            await asyncio.sleep(delay)

    return report


def render_summary(report: FeedCheckReport, *, highlight: Optional[str] = None) -> list[str]:
    """Lines of the end-of-run summary."""

    lines = [
        "📊 RSS Feed Test Summary:",
        f"   ✅ Working: {len(report.working)}",
        f"   ❌ Failed: {len(report.failed)}",
        f"   📈 Success Rate: {report.success_rate:.1f}%",
    ]

    if report.failed:
        lines.append("\n❌ Failed Feeds:")
        for item in report.failed:
            lines.extend(
                [
                    f"   - {item.feed.name} ({item.feed.category})",
                    f"     URL: {item.feed.url}",
                    f"     Error: {item.error}",
                    "",
                ]
            )

    if report.working:
        lines.append("\n✅ Working Feeds:")
        for item in report.working:
            lines.append(f"   - {item.feed.name} ({item.feed.category}) - {item.item_count} items")

    if highlight:
        lines.extend(_render_highlight(report, highlight))
    return lines


def _render_highlight(report: FeedCheckReport, marker: str) -> Iterable[str]:
    feeds = [item.feed for item in report.working] + [item.feed for item in report.failed]
    matches = sorted((feed for feed in feeds if marker in feed.name), key=lambda feed: feed.name)
    if not matches:
        return []
    lines = [f"\n🤖 {marker} Feeds Found: {len(matches)}"]
    for feed in matches:
        status = "✅ Working" if report.is_working(feed.id) else "❌ Failed"
        lines.append(f"   {status} - {feed.name}")
    return lines


async def run_feed_check(
    session_factory,
    *,
    init=None,
    fetch: FeedFetcher = fetch_with_rss_client,
    delay: float = 1.0,
    highlight: Optional[str] = None,
    out: Callable[[str], None] = print,
) -> FeedCheckReport:
    """Initialize storage, read every feed ordered by name, check them and print the summary."""

    if init is not None:
        out("🔧 Initializing database...")
        await init()

    async with session_factory() as session:
        feeds = [FeedRecord.from_model(feed) for feed in await crud.list_all_feeds_by_name(session)]

    report = await check_feeds(feeds, fetch=fetch, delay=delay, out=out)
    for line in render_summary(report, highlight=highlight):
        out(line)
    return report
