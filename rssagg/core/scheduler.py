"""
APScheduler integration for the feed scraper.

Every `fetch_interval` seconds (first tick immediately) the scheduler selects
the `batch_size` least recently fetched feeds, runs one FetchWorker per feed
concurrently, and waits for the whole batch before the next tick. The job is
registered with max_instances=1, so batches never overlap: a fire time that
arrives while a batch is still running is skipped.

The FastAPI lifespan calls start_scheduler() / stop_scheduler(); the CLI can
run the schedule in the foreground or a single tick.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from functools import partial
from typing import Any

import aiohttp
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from rssagg.config import ScraperConfig, get_config, get_settings
from rssagg.core.database import AsyncSessionLocal
from rssagg.core.datetime_utils import utc_now
from rssagg.core.logging import get_logger
from rssagg.ingest.base import BatchResult, FeedOutcome, FeedResult
from rssagg.ingest.errors import SelectionError
from rssagg.ingest.rss import fetch_feed
from rssagg.ingest.store import FeedStore, SqlFeedStore
from rssagg.ingest.worker import FeedFetcher, FetchWorker

logger = get_logger(__name__)

SCRAPE_JOB_ID = "feed_scrape"


class FeedScheduler:
    """Owns the APScheduler instance that drives tick() and its in-flight batch."""

    def __init__(
        self,
        store: FeedStore,
        config: ScraperConfig,
        fetcher: FeedFetcher | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.fetcher = fetcher
        self.last_batch: BatchResult | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._in_flight: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def scrape_job(self) -> None:
        """Scheduled job body: one tick, tracked so stop() can wait for it."""
        self._in_flight = asyncio.current_task()
        try:
            await self.tick()
        except Exception as e:
            logger.bind(error=str(e)).exception("scheduler_tick_failed")
            raise  # Re-raise so APScheduler records the failure
        finally:
            self._in_flight = None

    async def tick(self) -> BatchResult:
        """Select one batch of stale feeds and process it to completion."""
        batch = BatchResult(started_at=utc_now())

        try:
            feeds = await self.store.select_feeds_due_for_fetch(self.config.batch_size)
        except SelectionError as e:
            logger.bind(error=str(e)).error("feed_selection_failed")
            batch.selection_failed = True
            batch.error = str(e)
            return self._finish(batch)

        batch.selected = len(feeds)
        if not feeds:
            logger.debug("no_feeds_due")
            return self._finish(batch)

        logger.bind(count=len(feeds)).info("feeds_selected")

        # One worker per selected feed, all started together
        async with self._fetcher() as fetcher:
            worker = FetchWorker(self.store, fetcher)
            outcomes = await asyncio.gather(
                *(worker.process(feed) for feed in feeds), return_exceptions=True
            )

        for feed, outcome in zip(feeds, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.bind(feed_url=feed.url, error=repr(outcome)).error("feed_worker_crashed")
                outcome = FeedResult(
                    feed_id=feed.id,
                    feed_name=feed.name,
                    feed_url=feed.url,
                    outcome=FeedOutcome.UNEXPECTED_ERROR,
                    error=repr(outcome),
                )
            batch.results.append(outcome)

        return self._finish(batch)

    def _finish(self, batch: BatchResult) -> BatchResult:
        batch.finished_at = utc_now()
        self.last_batch = batch
        if batch.selected:
            logger.bind(**batch.summary()).info("batch_completed")
        return batch

    @contextlib.asynccontextmanager
    async def _fetcher(self) -> AsyncIterator[FeedFetcher]:
        """Yield the injected fetcher, or an HTTP one sharing a session per batch."""
        if self.fetcher is not None:
            yield self.fetcher
            return

        async with aiohttp.ClientSession() as session:
            yield partial(
                fetch_feed,
                session=session,
                timeout=self.config.fetch_timeout,
                user_agent=self.config.user_agent,
            )

    def start(self) -> AsyncIOScheduler:
        """Register the scrape job and start the scheduler on the running event loop."""
        if self.running:
            return self._scheduler

        scheduler = AsyncIOScheduler(timezone="UTC")
        scheduler.add_job(
            self.scrape_job,
            IntervalTrigger(seconds=self.config.fetch_interval),
            id=SCRAPE_JOB_ID,
            next_run_time=datetime.now(UTC),  # First tick immediately
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.bind(**self.config.as_dict()).info("scheduler_job_registered")
        return scheduler

    async def stop(self) -> None:
        """
        Pause the schedule and wait for the in-flight batch, then shut down.

        The batch gets `shutdown_timeout` seconds, then it is cancelled.
        Feeds are marked before they are fetched, so an abandoned worker
        leaves its feed marked as attempted.
        """
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is None:
            return

        scheduler.pause()

        task = self._in_flight
        if task is not None and not task.done():
            done, _ = await asyncio.wait({task}, timeout=self.config.shutdown_timeout)
            if not done:
                logger.bind(timeout=self.config.shutdown_timeout).warning(
                    "scheduler_shutdown_timeout"
                )
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        scheduler.shutdown(wait=False)
        # AsyncIOScheduler applies the shutdown on the next loop iteration
        await asyncio.sleep(0)

    async def run(self) -> None:
        """Run the schedule in the foreground until the task is cancelled."""
        self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    def next_run_at(self) -> datetime | None:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(SCRAPE_JOB_ID)
        return job.next_run_time if job else None

    def status(self) -> dict[str, Any]:
        next_run = self.next_run_at()
        return {
            "running": self.running,
            "config": self.config.as_dict(),
            "next_run_at": next_run.isoformat() if next_run else None,
            "last_batch": self.last_batch.summary() if self.last_batch else None,
        }


# Global scheduler instance
scheduler: FeedScheduler | None = None


def create_scheduler(config: ScraperConfig | None = None) -> FeedScheduler:
    """Build a scheduler over the application database."""
    return FeedScheduler(
        store=SqlFeedStore(AsyncSessionLocal),
        config=config or get_config().scraper,
    )


async def start_scheduler() -> FeedScheduler | None:
    """Start the background scrape schedule unless disabled by config."""
    global scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    scheduler = create_scheduler()
    scheduler.start()
    logger.bind(jobs=[SCRAPE_JOB_ID]).info("scheduler_started")
    return scheduler


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler."""
    global scheduler
    if scheduler:
        await scheduler.stop()
        logger.info("scheduler_stopped")
        scheduler = None


def get_scheduler() -> FeedScheduler | None:
    return scheduler
