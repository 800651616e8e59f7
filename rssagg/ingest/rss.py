import io
import xml.sax
import xml.sax.handler
from typing import Any
from xml.sax import SAXException

import aiohttp
import feedparser

from rssagg.ingest.base import RawFeedDocument, RawFeedItem
from rssagg.ingest.errors import FetchError, ParseError

DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_USER_AGENT = "RSSAgg/1.0"


async def fetch_feed(
    url: str,
    *,
    session: aiohttp.ClientSession | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
) -> RawFeedDocument:
    """
    Fetch a feed URL and parse it as an RSS document.

    A single attempt is made; retrying is left to the scheduler, which will
    select the feed again on a later tick.

    Args:
        url: Feed URL
        session: Shared client session, a temporary one is opened if omitted
        timeout: Total request timeout in seconds
        user_agent: User-Agent header value

    Raises:
        FetchError: Network failure, timeout, non-2xx status or unreadable body
        ParseError: Body is not a well-formed feed document
    """
    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await fetch_feed(
                url, session=own_session, timeout=timeout, user_agent=user_agent
            )

    body = await _download(session, url, timeout, user_agent)
    return parse_feed_document(body)


async def _download(
    session: aiohttp.ClientSession,
    url: str,
    timeout: float,
    user_agent: str,
) -> bytes:
    """GET the feed body, mapping every transport failure to FetchError."""
    try:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers={
                "User-Agent": user_agent,
                "Accept": "application/rss+xml, application/xml;q=0.9, */*;q=0.8",
            },
        ) as response:
            if not 200 <= response.status < 300:
                raise FetchError(f"unexpected status {response.status}", status=response.status)
            return await response.read()
    except TimeoutError as e:
        raise FetchError(f"timed out after {timeout}s") from e
    except aiohttp.ClientError as e:
        raise FetchError(str(e) or e.__class__.__name__) from e


def parse_feed_document(body: bytes | str) -> RawFeedDocument:
    """
    Parse a response body into a RawFeedDocument.

    Raises:
        ParseError: Body is not well-formed XML, or no feed format was recognized
    """
    if isinstance(body, str):
        body = body.encode("utf-8")

    # Stream input keeps feedparser from treating the body as a URL or path.
    # Descriptions pass through untouched, so no sanitizing or URI rewriting.
    parsed = feedparser.parse(
        io.BytesIO(body),
        sanitize_html=False,
        resolve_relative_uris=False,
    )

    # feedparser falls back to a lenient parser on broken XML; we only accept
    # that fallback for namespace errors (e.g. an undeclared dc: prefix)
    if parsed.get("bozo") and isinstance(parsed.get("bozo_exception"), SAXException):
        _check_well_formed(body)

    if not parsed.get("version"):
        raise ParseError("document is not a recognized feed")

    return map_feed_document(parsed)


def _check_well_formed(body: bytes) -> None:
    """Raise ParseError unless the body is well-formed XML, ignoring namespaces."""
    try:
        xml.sax.parse(io.BytesIO(body), xml.sax.handler.ContentHandler())
    except SAXException as e:
        raise ParseError(f"malformed XML: {e}") from e


def map_feed_document(parsed: Any) -> RawFeedDocument:
    """
    Map feedparser's result onto our channel/item schema.

    RSS <description> is exposed by feedparser as "subtitle" on the channel
    and "summary" on items; <pubDate> as "published". Anything else is ignored.
    """
    channel = parsed.get("feed", {})

    return RawFeedDocument(
        title=_text(channel, "title"),
        link=_text(channel, "link"),
        description=_text(channel, "subtitle"),
        language=_text(channel, "language"),
        items=[map_feed_item(entry) for entry in parsed.get("entries", [])],
    )


def map_feed_item(entry: Any) -> RawFeedItem:
    """Map a single feedparser entry onto RawFeedItem."""
    return RawFeedItem(
        title=_text(entry, "title"),
        link=_text(entry, "link"),
        description=_text(entry, "summary"),
        pub_date=_text(entry, "published"),
    )


def _text(node: Any, key: str) -> str:
    value = node.get(key)
    return value if isinstance(value, str) else ""
