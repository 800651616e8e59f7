"""
Data access for the feed scraper.

The scheduler and workers only depend on the FeedStore protocol. SqlFeedStore
implements it over SQLAlchemy, opening a fresh session for every call so that
concurrent workers never share a session; the database serializes writes.
"""

import uuid
from datetime import timedelta
from typing import Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rssagg.core.datetime_utils import utc_now
from rssagg.ingest.base import PostCandidate
from rssagg.ingest.errors import (
    DuplicatePostError,
    ItemPersistError,
    MarkFetchedError,
    SelectionError,
)
from rssagg.models import Feed, FeedFollow, Post


class FeedStore(Protocol):
    """Persistence operations consumed by the fetch cycle."""

    async def select_feeds_due_for_fetch(self, limit: int) -> list[Feed]: ...

    async def mark_feed_fetched(self, feed_id: uuid.UUID) -> Feed: ...

    async def post_exists(self, feed_id: uuid.UUID, url: str) -> bool: ...

    async def insert_post(self, candidate: PostCandidate) -> Post: ...


class SqlFeedStore:
    """FeedStore backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def select_feeds_due_for_fetch(self, limit: int) -> list[Feed]:
        """
        Select up to `limit` feeds, least recently fetched first.

        Feeds that were never fetched (NULL last_fetched_at) come first.

        Raises:
            SelectionError: The query failed
        """
        query = (
            select(Feed)
            .order_by(Feed.last_fetched_at.asc().nulls_first(), Feed.created_at.asc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise SelectionError(f"could not select feeds: {e}") from e

    async def mark_feed_fetched(self, feed_id: uuid.UUID) -> Feed:
        """
        Advance a feed's last_fetched_at (and updated_at) to now.

        The update is guarded so last_fetched_at never moves backwards, and
        bumps by a microsecond if the clock hasn't moved since the last mark.

        Raises:
            MarkFetchedError: The feed doesn't exist or the update failed
        """
        try:
            async with self._session_factory() as session:
                feed = await session.get(Feed, feed_id)
                if feed is None:
                    raise MarkFetchedError(f"feed {feed_id} not found")

                now = utc_now()
                previous = feed.last_fetched_at
                if previous is not None and previous >= now:
                    now = previous + timedelta(microseconds=1)

                await session.execute(
                    update(Feed)
                    .where(
                        Feed.id == feed_id,
                        or_(Feed.last_fetched_at.is_(None), Feed.last_fetched_at < now),
                    )
                    .values(last_fetched_at=now, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()

                await session.refresh(feed)
                return feed
        except SQLAlchemyError as e:
            raise MarkFetchedError(f"could not mark feed {feed_id} fetched: {e}") from e

    async def post_exists(self, feed_id: uuid.UUID, url: str) -> bool:
        """Check whether a post with this (feed, url) is already stored."""
        query = select(Post.id).where(Post.feed_id == feed_id, Post.url == url).limit(1)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return result.first() is not None
        except SQLAlchemyError as e:
            raise ItemPersistError(f"could not check post {url}: {e}") from e

    async def insert_post(self, candidate: PostCandidate) -> Post:
        """
        Insert a post.

        Raises:
            DuplicatePostError: (feed, url) already exists
            ItemPersistError: Any other database failure
        """
        now = utc_now()
        post = Post(
            feed_id=candidate.feed_id,
            title=candidate.title,
            url=candidate.url,
            description=candidate.description,
            published_at=candidate.published_at,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session:
                session.add(post)
                await session.commit()
                return post
        except IntegrityError as e:
            raise DuplicatePostError(f"post {candidate.url} already exists") from e
        except SQLAlchemyError as e:
            raise ItemPersistError(f"could not insert post {candidate.url}: {e}") from e

    async def list_posts_for_user(self, user_id: uuid.UUID, limit: int = 10) -> list[Post]:
        """Posts from feeds the user follows, newest first."""
        query = (
            select(Post)
            .join(FeedFollow, FeedFollow.feed_id == Post.feed_id)
            .where(FeedFollow.user_id == user_id)
            .order_by(
                Post.published_at.desc().nulls_last(),
                Post.created_at.desc(),
            )
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
