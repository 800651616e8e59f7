"""Failure taxonomy for the feed scraper.

None of these are fatal to the process: the scheduler and workers catch them,
log them, and carry on with the next tick, feed or item.
"""


class ScraperError(Exception):
    """Base class for feed scraper errors."""


class SelectionError(ScraperError):
    """Feeds due for fetching could not be selected (store unavailable)."""


class MarkFetchedError(ScraperError):
    """A feed's last_fetched_at could not be advanced."""


class FetchError(ScraperError):
    """Network failure, timeout, non-success status or unreadable body."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ParseError(ScraperError):
    """The response body is not a well-formed RSS document."""


class NormalizationError(ScraperError):
    """A raw item cannot become a post (e.g. it has no link)."""


class ItemPersistError(ScraperError):
    """A single post failed to persist."""


class DuplicatePostError(ItemPersistError):
    """A post with the same (feed, url) already exists."""
