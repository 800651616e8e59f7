from rssagg.ingest.base import (
    BatchResult,
    FeedOutcome,
    FeedResult,
    PostCandidate,
    RawFeedDocument,
    RawFeedItem,
)
from rssagg.ingest.normalizer import normalize_item, parse_pub_date
from rssagg.ingest.rss import fetch_feed, parse_feed_document
from rssagg.ingest.store import FeedStore, SqlFeedStore
from rssagg.ingest.worker import FetchWorker

__all__ = [
    "BatchResult",
    "FeedOutcome",
    "FeedResult",
    "PostCandidate",
    "RawFeedDocument",
    "RawFeedItem",
    "FeedStore",
    "SqlFeedStore",
    "FetchWorker",
    "fetch_feed",
    "parse_feed_document",
    "normalize_item",
    "parse_pub_date",
]
