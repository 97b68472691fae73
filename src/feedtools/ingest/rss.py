"""RSS fetching and entry normalization."""

from __future__ import annotations

import contextlib
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import dateparser
import feedparser
import httpx

from ..config import get_settings
from ..errors import FeedFetchError, FeedParseError


logger = logging.getLogger("feedtools.rss")

MIN_CONTENT_CHARS = 50
MAX_CONTENT_CHARS = 5000
MAX_TAGS = 10

TAG_RE = re.compile(r"<[^>]*>")
WHITESPACE_RE = re.compile(r"\s+")
HASHTAG_RE = re.compile(r"#(\w+)")


@dataclass(slots=True)
class FeedEntry:
    """Normalized RSS entry."""

    title: str
    link: str
    content: str
    feed: str
    summary: Optional[str] = None
    published: Optional[datetime] = None
    author: Optional[str] = None
    guid: Optional[str] = None
    tags: list[str] = field(default_factory=list)


class RSSClient:
    """Fetch and parse a single RSS/Atom feed asynchronously."""

    def __init__(
        self,
        url: str,
        *,
        name: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self.url = url
        self.name = name or url
        self.timeout = timeout if timeout is not None else settings.feed_timeout_seconds
        self.user_agent = user_agent or settings.feed_user_agent
        self._client = client

    async def fetch(self) -> feedparser.FeedParserDict:
        """Return the raw parsed feed. Raises on transport or parse failure."""

        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), follow_redirects=True)
            close_client = True

        try:
            response = await client.get(self.url, headers={"User-Agent": self.user_agent})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FeedFetchError(self.url, str(exc) or exc.__class__.__name__) from exc
        finally:
            if close_client:
                await client.aclose()

        # a stream is never mistaken for a URL or file path
        parsed = feedparser.parse(
            io.BytesIO(response.content), response_headers=dict(response.headers)
        )
        if parsed.bozo and not parsed.entries and not parsed.feed.get("title"):
            reason = parsed.get("bozo_exception") or "not a valid feed document"
            raise FeedParseError(self.url, str(reason))
        return parsed

    async def fetch_entries(self) -> list[FeedEntry]:
        """Return normalized feed entries, skipping those without a title or link."""

        parsed = await self.fetch()
        entries: list[FeedEntry] = []
        for raw in parsed.entries:
            entry = normalize_entry(raw, feed=self.name)
            if entry is None:
                continue
            entries.append(entry)
        logger.debug("Parsed %d/%d entries from %s", len(entries), len(parsed.entries), self.url)
        return entries


def normalize_entry(raw: feedparser.FeedParserDict, *, feed: str) -> Optional[FeedEntry]:
    title = (raw.get("title") or "").strip()
    link = raw.get("link") or ""
    if not title or not link:
        return None
    summary = raw.get("summary") or raw.get("description")
    return FeedEntry(
        title=title,
        link=link,
        content=extract_content(raw),
        feed=feed,
        summary=clean_content(summary) if summary else None,
        published=_parse_datetime(raw),
        author=raw.get("author") or None,
        guid=raw.get("id") or None,
        tags=extract_tags(raw),
    )


def extract_content(raw: feedparser.FeedParserDict) -> str:
    """Pick the first sufficiently long content field, falling back to the title."""

    candidates: list[str] = [block.get("value", "") for block in raw.get("content") or []]
    candidates.extend([raw.get("description") or "", raw.get("summary") or ""])
    for value in candidates:
        if isinstance(value, str) and len(value) > MIN_CONTENT_CHARS:
            return clean_content(value)
    return (raw.get("title") or "").strip()


def clean_content(content: str) -> str:
    """Strip HTML tags, collapse whitespace and cap the length."""

    text = WHITESPACE_RE.sub(" ", TAG_RE.sub(" ", content)).strip()
    if len(text) > MAX_CONTENT_CHARS:
        return text[:MAX_CONTENT_CHARS] + "..."
    return text


def extract_tags(raw: feedparser.FeedParserDict) -> list[str]:
    tags: list[str] = [tag.get("term") for tag in raw.get("tags") or [] if tag.get("term")]

    body = " ".join(block.get("value", "") for block in raw.get("content") or [])
    tags.extend(HASHTAG_RE.findall(f"{raw.get('title', '')} {body}"))

    # dict keeps first-seen order
    return list(dict.fromkeys(tags))[:MAX_TAGS]


def _parse_datetime(entry: feedparser.FeedParserDict) -> Optional[datetime]:
    """Parse the published timestamp using dateparser."""

    for key in ("published", "updated", "created"):
        raw = entry.get(key)
        if raw:
            with contextlib.suppress(ValueError, OverflowError):
                parsed = dateparser.parse(
                    raw,
                    settings={"RETURN_AS_TIMEZONE_AWARE": True, "TO_TIMEZONE": "UTC"},
                )
                if parsed:
                    return parsed
    return None
