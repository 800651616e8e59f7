import uuid
from datetime import datetime
from email.utils import parsedate_to_datetime

from rssagg.core.datetime_utils import to_naive_utc
from rssagg.core.logging import get_logger
from rssagg.ingest.base import PostCandidate, RawFeedItem
from rssagg.ingest.errors import NormalizationError

logger = get_logger(__name__)


def parse_pub_date(value: str) -> datetime | None:
    """
    Best-effort parse of an item's publish date.

    Handles RFC 1123 / RFC 822 dates with or without seconds, named or
    numeric zones and two-digit years (plus obsolete RFC 850), then
    ISO 8601 / RFC 3339. Anything else is treated as unparseable.

    Returns:
        Naive UTC datetime, or None if the value can't be parsed
    """
    value = (value or "").strip()
    if not value:
        return None

    try:
        return to_naive_utc(parsedate_to_datetime(value))
    except (TypeError, ValueError, IndexError):
        pass

    try:
        return to_naive_utc(datetime.fromisoformat(value))
    except ValueError:
        pass

    logger.bind(value=value).debug("pub_date_unparseable")
    return None


def normalize_item(raw: RawFeedItem, feed_id: uuid.UUID) -> PostCandidate:
    """
    Convert a raw feed item into a post candidate.

    Title and description pass through (empty allowed); the link is required
    since (feed, link) is the dedup key. An unparseable pubDate leaves
    published_at unset rather than dropping the item.

    Raises:
        NormalizationError: The item has no link
    """
    url = raw.link.strip()
    if not url:
        raise NormalizationError(f"item {raw.title[:50]!r} has no link")

    return PostCandidate(
        feed_id=feed_id,
        title=raw.title.strip(),
        url=url,
        description=raw.description.strip() or None,
        published_at=parse_pub_date(raw.pub_date),
    )
