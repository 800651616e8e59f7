import ssl
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rssagg.config import get_settings

settings = get_settings()


def prepare_url(url: str) -> tuple[str, dict]:
    """
    Prepare a database URL for the async drivers.

    libpq-style params like sslmode, channel_binding are not accepted by
    asyncpg. We strip them and handle SSL via connect_args.

    - Remote PostgreSQL: SSL with default context
    - Local dev (localhost/127.0.0.1/db) and SQLite: no SSL
    """
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url, {}

    params = parse_qs(parsed.query)

    # Remove unsupported asyncpg params
    unsupported = ["sslmode", "channel_binding", "options"]
    for param in unsupported:
        params.pop(param, None)

    # Rebuild URL without unsupported params
    new_query = urlencode(params, doseq=True)
    clean_url = urlunparse(parsed._replace(query=new_query))

    hostname = parsed.hostname or ""
    is_local = hostname in ("localhost", "127.0.0.1", "db")

    if is_local:
        return clean_url, {}
    else:
        ssl_context = ssl.create_default_context()
        return clean_url, {"ssl": ssl_context}


def create_engine_from_url(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, with pooling tuned for PostgreSQL."""
    clean_url, connect_args = prepare_url(url)

    kwargs: dict[str, Any] = {"echo": echo, "connect_args": connect_args}
    if not clean_url.startswith("sqlite"):
        # Scheduler workers and request handlers share this pool
        kwargs.update(
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=10,
            pool_recycle=280,
        )
    return create_async_engine(clean_url, **kwargs)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine_from_url(settings.database_url, echo=settings.debug)

AsyncSessionLocal = create_session_factory(engine)


async def init_models(bind: AsyncEngine | None = None) -> None:
    """Create all tables directly from metadata (dev / SQLite setups)."""
    from rssagg.models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
