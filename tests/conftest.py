"""
Pytest configuration and fixtures for RSSAgg tests.

Provides:
- Async test database with SQLite and a SqlFeedStore over it
- An in-memory FakeFeedStore for worker and scheduler tests
- Test client for API testing
- Factory fixtures for creating test data
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rssagg.config import ScraperConfig, Settings
from rssagg.core.database import create_session_factory
from rssagg.core.datetime_utils import utc_now
from rssagg.ingest.base import PostCandidate, RawFeedDocument, RawFeedItem
from rssagg.ingest.errors import DuplicatePostError, MarkFetchedError, SelectionError
from rssagg.ingest.store import SqlFeedStore
from rssagg.main import app
from rssagg.models import Base, Feed, FeedFollow, User

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def file_db_engine(tmp_path):
    """File-backed SQLite engine, for tests that open concurrent sessions."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rssagg.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest.fixture
def store(session_factory) -> SqlFeedStore:
    return SqlFeedStore(session_factory)


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client (lifespan, and so the scheduler, is not started)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest.fixture
def user_factory(session_factory):
    """Factory for creating test users."""

    async def _create_user(name: str = "Test User") -> User:
        user = User(name=name)
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _create_user


@pytest.fixture
def feed_factory(session_factory, user_factory):
    """Factory for creating test feeds."""

    async def _create_feed(
        url: str = None,
        name: str = "Test Feed",
        last_fetched_at: datetime = None,
        user: User = None,
    ) -> Feed:
        if url is None:
            url = f"https://example.com/feed-{uuid.uuid4().hex[:8]}.xml"
        if user is None:
            user = await user_factory()

        feed = Feed(user_id=user.id, name=name, url=url, last_fetched_at=last_fetched_at)
        async with session_factory() as session:
            session.add(feed)
            await session.commit()
        return feed

    return _create_feed


@pytest.fixture
def follow_factory(session_factory):
    """Factory for creating feed follows."""

    async def _create_follow(user: User, feed: Feed) -> FeedFollow:
        follow = FeedFollow(user_id=user.id, feed_id=feed.id)
        async with session_factory() as session:
            session.add(follow)
            await session.commit()
        return follow

    return _create_follow


# ============================================================================
# In-Memory Test Helpers (no DB)
# ============================================================================


class FakeFeedStore:
    """In-memory FeedStore with switchable failures."""

    def __init__(self, feeds: list[Feed] | None = None) -> None:
        self.feeds: dict[uuid.UUID, Feed] = {f.id: f for f in feeds or []}
        self.posts: dict[tuple[uuid.UUID, str], PostCandidate] = {}
        self.mark_calls: list[uuid.UUID] = []
        self.selection_error: Exception | None = None
        self.mark_failures: set[uuid.UUID] = set()
        self.insert_errors: dict[str, Exception] = {}

    async def select_feeds_due_for_fetch(self, limit: int) -> list[Feed]:
        if self.selection_error:
            raise self.selection_error
        ordered = sorted(
            self.feeds.values(),
            key=lambda f: (f.last_fetched_at is not None, f.last_fetched_at or datetime.min),
        )
        return ordered[:limit]

    async def mark_feed_fetched(self, feed_id: uuid.UUID) -> Feed:
        self.mark_calls.append(feed_id)
        if feed_id in self.mark_failures:
            raise MarkFetchedError("store unavailable")
        feed = self.feeds[feed_id]
        now = utc_now()
        if feed.last_fetched_at is not None and feed.last_fetched_at >= now:
            now = feed.last_fetched_at + timedelta(microseconds=1)
        feed.last_fetched_at = now
        return feed

    async def post_exists(self, feed_id: uuid.UUID, url: str) -> bool:
        return (feed_id, url) in self.posts

    async def insert_post(self, candidate: PostCandidate) -> PostCandidate:
        if candidate.url in self.insert_errors:
            raise self.insert_errors[candidate.url]
        key = (candidate.feed_id, candidate.url)
        if key in self.posts:
            raise DuplicatePostError(f"post {candidate.url} already exists")
        self.posts[key] = candidate
        return candidate

    def posts_for(self, feed: Feed) -> list[PostCandidate]:
        return [post for (feed_id, _), post in self.posts.items() if feed_id == feed.id]


@pytest.fixture
def make_feed():
    """Factory for in-memory Feed objects (no DB)."""

    def _make(
        name: str = "Test Feed",
        url: str = None,
        last_fetched_at: datetime = None,
    ) -> Feed:
        if url is None:
            url = f"https://example.com/{uuid.uuid4().hex[:8]}.xml"
        return Feed(
            id=uuid.uuid4(),
            user_id=uuid.uuid4(),
            name=name,
            url=url,
            last_fetched_at=last_fetched_at,
        )

    return _make


@pytest.fixture
def fake_store():
    """Factory for FakeFeedStore instances."""

    def _create(feeds: list[Feed] | None = None) -> FakeFeedStore:
        return FakeFeedStore(feeds)

    return _create


@pytest.fixture
def make_document():
    """Factory for RawFeedDocument with the given item links."""

    def _make(*links: str, pub_date: str = "Sat, 10 Jan 2026 10:00:00 GMT") -> RawFeedDocument:
        return RawFeedDocument(
            title="Test Feed",
            link="https://example.com",
            items=[
                RawFeedItem(title=f"Post {i}", link=link, description="Body", pub_date=pub_date)
                for i, link in enumerate(links, start=1)
            ],
        )

    return _make


@pytest.fixture
def scraper_config():
    """Factory for ScraperConfig without reading config.yml."""

    def _create(**overrides) -> ScraperConfig:
        data = {"fetch_interval": 60, "batch_size": 10, "fetch_timeout": 10}
        data.update(overrides)
        settings = Settings(
            fetch_interval_seconds=0,
            fetch_batch_size=0,
            fetch_timeout_seconds=0,
        )
        return ScraperConfig(data, settings)

    return _create


@pytest.fixture
def failing_selection():
    return SelectionError("connection refused")


@pytest.fixture
def sample_rss_feed():
    """Sample RSS feed content for testing."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Test Feed</title>
        <link>https://example.com</link>
        <description>A feed for tests</description>
        <language>en-us</language>
        <item>
            <title>Article One</title>
            <link>https://example.com/article-1</link>
            <description>Description of article one</description>
            <pubDate>Sat, 10 Jan 2026 10:00:00 GMT</pubDate>
            <author>author@example.com</author>
        </item>
        <item>
            <title>Article Two</title>
            <link>https://example.com/article-2</link>
            <description>Description of article two</description>
        </item>
    </channel>
</rss>
"""


@pytest.fixture
def mock_aiohttp_session():
    """
    Factory for creating mock aiohttp ClientSession objects.

    Simplifies HTTP mocking for fetcher tests.
    """
    from unittest.mock import AsyncMock, MagicMock

    def _create_mock(
        body: str | bytes = b"",
        status: int = 200,
        raise_error: Exception = None,
    ) -> MagicMock:
        if isinstance(body, str):
            body = body.encode("utf-8")

        mock_session = MagicMock()
        mock_response = AsyncMock()
        mock_response.status = status
        mock_response.read = AsyncMock(return_value=body)

        mock_cm = MagicMock()
        if raise_error:
            mock_cm.__aenter__ = AsyncMock(side_effect=raise_error)
        else:
            mock_cm.__aenter__ = AsyncMock(return_value=mock_response)
        mock_cm.__aexit__ = AsyncMock(return_value=None)

        mock_session.get = MagicMock(return_value=mock_cm)

        return mock_session

    return _create_mock
