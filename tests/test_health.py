"""Tests for the feed health check."""

from __future__ import annotations

import sys

import feedparser
import pytest

from scripts import check_rss_feeds
from src.feedtools.errors import FeedFetchError
from src.feedtools.ingest import health
from src.feedtools.ingest.health import (
    FeedCheckReport,
    FeedRecord,
    WorkingFeed,
    check_feeds,
    render_summary,
    run_feed_check,
)
from src.feedtools.storage import crud


def _record(feed_id: int, name: str, url: str | None = None, category: str = "Tech") -> FeedRecord:
    return FeedRecord(
        id=feed_id,
        name=name,
        url=url or f"https://example.com/{feed_id}.xml",
        category=category,
        is_active=True,
    )


@pytest.fixture
def fake_fetch(rss_document):
    xml = rss_document(
        [
            {"title": "Hello", "link": "https://example.com/a"},
            {"title": "World", "link": "https://example.com/b"},
        ]
    )

    async def fetch(url: str):
        if "broken" in url:
            raise FeedFetchError(url, "connection refused")
        return feedparser.parse(xml)

    return fetch


@pytest.mark.asyncio
async def test_failed_feed_is_excluded_from_working(fake_fetch):
    feeds = [_record(1, "Good"), _record(2, "Bad", url="https://broken.example.com/rss")]
    report = await check_feeds(feeds, fetch=fake_fetch, delay=0, out=lambda line: None)

    assert [item.feed.name for item in report.working] == ["Good"]
    assert [item.feed.name for item in report.failed] == ["Bad"]
    assert "connection refused" in report.failed[0].error
    assert report.working[0].item_count == 2
    assert report.working[0].sample_title == "Hello"


@pytest.mark.asyncio
async def test_counts_sum_to_total(fake_fetch):
    feeds = [
        _record(1, "A"),
        _record(2, "B", url="https://broken.example.com/1"),
        _record(3, "C"),
        _record(4, "D", url="https://broken.example.com/2"),
        _record(5, "E"),
    ]
    report = await check_feeds(feeds, fetch=fake_fetch, delay=0, out=lambda line: None)
    assert len(report.working) + len(report.failed) == report.total == 5


@pytest.mark.asyncio
async def test_unexpected_exception_is_recorded(fake_fetch):
    async def explode(url: str):
        raise RuntimeError("parser crashed")

    report = await check_feeds([_record(1, "A")], fetch=explode, delay=0, out=lambda line: None)
    assert report.working == []
    assert report.failed[0].error == "parser crashed"


@pytest.mark.asyncio
async def test_delay_applied_after_every_feed(fake_fetch, monkeypatch):
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    monkeypatch.setattr(health.asyncio, "sleep", fake_sleep)
    feeds = [_record(1, "A"), _record(2, "B", url="https://broken.example.com/x")]
    await check_feeds(feeds, fetch=fake_fetch, delay=1.0, out=lambda line: None)
    assert sleeps == [1.0, 1.0]


@pytest.mark.parametrize(
    ("working", "total", "expected"),
    [(2, 3, 66.7), (1, 3, 33.3), (3, 3, 100.0), (0, 4, 0.0), (0, 0, 0.0)],
)
def test_success_rate(working, total, expected):
    report = FeedCheckReport(total=total)
    report.working = [WorkingFeed(feed=_record(i, f"F{i}"), item_count=1) for i in range(working)]
    assert report.success_rate == expected


@pytest.mark.asyncio
async def test_render_summary_lists_failures_and_highlight(fake_fetch):
    feeds = [
        _record(1, "AI Wire News"),
        _record(2, "AI Wire Broken", url="https://broken.example.com/rss", category="AI"),
        _record(3, "Other"),
    ]
    report = await check_feeds(feeds, fetch=fake_fetch, delay=0, out=lambda line: None)
    text = "\n".join(render_summary(report, highlight="AI Wire"))

    assert "Working: 2" in text
    assert "Failed: 1" in text
    assert "Success Rate: 66.7%" in text
    assert "- AI Wire Broken (AI)" in text
    assert "AI Wire Feeds Found: 2" in text
    assert "❌ Failed - AI Wire Broken" in text
    assert "✅ Working - AI Wire News" in text


@pytest.mark.asyncio
async def test_run_feed_check_reads_feeds_by_name(test_db_sessionmaker, fake_fetch):
    async with test_db_sessionmaker() as session:
        await crud.add_feed(session, name="Zeta", url="https://example.com/z.xml")
        await crud.add_feed(session, name="Alpha", url="https://broken.example.com/a.xml", is_active=False)
        await session.commit()

    lines: list[str] = []
    report = await run_feed_check(test_db_sessionmaker, fetch=fake_fetch, delay=0, out=lines.append)

    assert report.total == 2
    assert [item.feed.name for item in report.failed] == ["Alpha"]
    assert [item.feed.name for item in report.working] == ["Zeta"]
    assert lines.index("🔍 Testing: Alpha") < lines.index("🔍 Testing: Zeta")
    assert "   📈 Success Rate: 50.0%" in lines


@pytest.mark.asyncio
async def test_run_feed_check_propagates_init_failure(test_db_sessionmaker, fake_fetch):
    async def broken_init() -> None:
        raise RuntimeError("database unavailable")

    with pytest.raises(RuntimeError, match="database unavailable"):
        await run_feed_check(
            test_db_sessionmaker, init=broken_init, fetch=fake_fetch, delay=0, out=lambda line: None
        )


@pytest.mark.asyncio
async def test_sample_line_printed_for_untitled_first_item(rss_document):
    xml = rss_document([{"link": "https://example.com/untitled"}])

    async def fetch(url: str):
        return feedparser.parse(xml)

    lines: list[str] = []
    report = await check_feeds([_record(1, "A")], fetch=fetch, delay=0, out=lines.append)
    assert report.working[0].item_count == 1
    assert "   📄 Sample: (untitled)" in lines


def test_script_exits_non_zero_when_database_fails(monkeypatch, capsys):
    async def broken_init() -> None:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(check_rss_feeds, "init_db", broken_init)
    monkeypatch.setattr(sys, "argv", ["check_rss_feeds.py", "--delay", "0"])
    with pytest.raises(SystemExit) as excinfo:
        check_rss_feeds.main()

    assert excinfo.value.code == 1
    assert "❌ Error testing RSS feeds: database unavailable" in capsys.readouterr().out
