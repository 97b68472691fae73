"""
Exceptions raised by the feed tools.
"""


class FeedToolsError(Exception):
    """Base exception for feedtools errors."""


class FeedFetchError(FeedToolsError):
    """The feed URL could not be retrieved."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class FeedParseError(FeedToolsError):
    """The response body is not a parsable RSS/Atom document."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to parse feed {url}: {reason}")


class EmbeddingError(FeedToolsError):
    """The embedding backend returned an error or an unexpected payload."""

    pass
