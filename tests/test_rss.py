"""Unit tests for RSS fetching and entry normalization."""

from __future__ import annotations

import feedparser.http
import httpx
import pytest

from src.feedtools.errors import FeedFetchError, FeedParseError
from src.feedtools.ingest.rss import RSSClient, clean_content, extract_content, extract_tags


FEED_URL = "https://example.com/feed.xml"


@pytest.mark.asyncio
async def test_fetch_entries_normalizes_items(rss_document, mock_http, long_text):
    xml = rss_document(
        [
            {
                "title": "First story",
                "link": "https://example.com/1",
                "description": f"&lt;p&gt;{long_text}&lt;/p&gt;",
                "pubDate": "Mon, 06 Jan 2025 10:00:00 GMT",
                "guid": "guid-1",
                "category": "Python",
            },
            {"title": "No link here", "description": long_text},
        ]
    )
    async with mock_http({FEED_URL: xml}) as client:
        entries = await RSSClient(FEED_URL, name="Example", client=client).fetch_entries()

    assert len(entries) == 1
    entry = entries[0]
    assert entry.title == "First story"
    assert entry.link == "https://example.com/1"
    assert entry.feed == "Example"
    assert entry.guid == "guid-1"
    assert "<p>" not in entry.content
    assert entry.content == long_text
    assert entry.published is not None
    assert entry.published.year == 2025
    assert entry.tags == ["Python"]


@pytest.mark.asyncio
async def test_fetch_sends_user_agent(rss_document):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ua"] = request.headers.get("User-Agent")
        return httpx.Response(200, text=rss_document([]))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await RSSClient(FEED_URL, user_agent="TestAgent/1.0", client=client).fetch()

    assert seen["ua"] == "TestAgent/1.0"


@pytest.mark.asyncio
async def test_fetch_http_error_raises_fetch_error(mock_http):
    async with mock_http({FEED_URL: httpx.Response(500, text="boom")}) as client:
        with pytest.raises(FeedFetchError) as excinfo:
            await RSSClient(FEED_URL, client=client).fetch()
    assert excinfo.value.url == FEED_URL


@pytest.mark.asyncio
async def test_fetch_non_feed_body_raises_parse_error(mock_http):
    async with mock_http({FEED_URL: "this is definitely <<< not xml"}) as client:
        with pytest.raises(FeedParseError):
            await RSSClient(FEED_URL, client=client).fetch()


@pytest.mark.asyncio
async def test_fetch_honours_declared_xml_encoding(mock_http, long_text):
    body = (
        '<?xml version="1.0" encoding="ISO-8859-1"?>'
        '<rss version="2.0"><channel><title>Latin feed</title>'
        f"<item><title>Caf\xe9 opens</title><link>https://example.com/cafe</link>"
        f"<description>{long_text}</description></item>"
        "</channel></rss>"
    ).encode("latin-1")
    response = httpx.Response(200, content=body, headers={"Content-Type": "application/rss+xml"})
    async with mock_http({FEED_URL: response}) as client:
        entries = await RSSClient(FEED_URL, client=client).fetch_entries()

    assert entries[0].title == "Caf\xe9 opens"


@pytest.mark.asyncio
async def test_url_shaped_body_is_not_fetched(mock_http, monkeypatch):
    followed: list[str] = []

    def fake_get(url, *args, **kwargs):
        followed.append(url)
        return b""

    monkeypatch.setattr(feedparser.http, "get", fake_get)
    async with mock_http({FEED_URL: "http://127.0.0.1:9/secret.xml"}) as client:
        with pytest.raises(FeedParseError):
            await RSSClient(FEED_URL, client=client).fetch()
    assert followed == []


def test_clean_content_strips_html_and_truncates():
    assert clean_content("<b>Hello</b>\n\n   world") == "Hello world"
    long_value = "x" * 6000
    cleaned = clean_content(long_value)
    assert len(cleaned) == 5003
    assert cleaned.endswith("...")


def test_extract_content_falls_back_to_title():
    raw = {"title": "Only a title", "summary": "too short"}
    assert extract_content(raw) == "Only a title"


def test_extract_tags_deduplicates_and_limits():
    raw = {
        "title": "Release notes #python #asyncio",
        "tags": [{"term": "python"}, {"term": "release"}] + [{"term": f"t{i}"} for i in range(12)],
        "content": [{"value": "More on #python"}],
    }
    tags = extract_tags(raw)
    assert tags[:2] == ["python", "release"]
    assert tags.count("python") == 1
    assert len(tags) == 10
