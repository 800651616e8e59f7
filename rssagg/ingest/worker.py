from collections.abc import Awaitable, Callable

from rssagg.core.logging import get_logger
from rssagg.ingest.base import FeedOutcome, FeedResult, RawFeedDocument
from rssagg.ingest.errors import (
    DuplicatePostError,
    FetchError,
    ItemPersistError,
    MarkFetchedError,
    NormalizationError,
    ParseError,
)
from rssagg.ingest.normalizer import normalize_item
from rssagg.ingest.store import FeedStore
from rssagg.models import Feed

logger = get_logger(__name__)

FeedFetcher = Callable[[str], Awaitable[RawFeedDocument]]


class FetchWorker:
    """
    Runs one feed's mark -> fetch -> normalize -> store cycle.

    Expected failures never escape process(): they end up in the returned
    FeedResult and the logs, so sibling workers in a batch are unaffected.
    """

    def __init__(self, store: FeedStore, fetcher: FeedFetcher) -> None:
        self.store = store
        self.fetcher = fetcher

    async def process(self, feed: Feed) -> FeedResult:
        result = FeedResult(feed_id=feed.id, feed_name=feed.name, feed_url=feed.url)
        log = logger.bind(feed_id=str(feed.id), feed_name=feed.name, feed_url=feed.url)

        # Mark before fetching: a feed whose fetch dies is still rotated out
        try:
            await self.store.mark_feed_fetched(feed.id)
        except MarkFetchedError as e:
            log.bind(error=str(e)).error("feed_mark_fetched_failed")
            result.outcome = FeedOutcome.MARK_ERROR
            result.error = str(e)
            return result

        try:
            document = await self.fetcher(feed.url)
        except FetchError as e:
            log.bind(error=str(e), status=e.status).error("feed_fetch_failed")
            result.outcome = FeedOutcome.FETCH_ERROR
            result.error = str(e)
            return result
        except ParseError as e:
            log.bind(error=str(e)).error("feed_parse_failed")
            result.outcome = FeedOutcome.PARSE_ERROR
            result.error = str(e)
            return result

        result.items_found = len(document.items)

        for raw_item in document.items:
            try:
                candidate = normalize_item(raw_item, feed.id)
            except NormalizationError as e:
                log.bind(error=str(e)).debug("feed_item_skipped")
                result.items_skipped += 1
                continue

            try:
                if await self.store.post_exists(feed.id, candidate.url):
                    result.duplicates += 1
                    continue
                await self.store.insert_post(candidate)
                result.posts_created += 1
            except DuplicatePostError:
                # Lost a race with another insert of the same item
                log.bind(url=candidate.url).debug("post_already_stored")
                result.duplicates += 1
            except ItemPersistError as e:
                log.bind(url=candidate.url, error=str(e)).error("post_persist_failed")
                result.items_failed += 1

        log.bind(
            items=result.items_found,
            created=result.posts_created,
            duplicates=result.duplicates,
            skipped=result.items_skipped,
            failed=result.items_failed,
        ).info("feed_collected")
        return result
