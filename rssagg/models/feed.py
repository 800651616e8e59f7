from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rssagg.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from rssagg.models.post import Post
    from rssagg.models.user import User


class Feed(Base, TimestampMixin):
    """A registered RSS source. Only the fetch cycle touches last_fetched_at."""

    __tablename__ = "feeds"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    url: Mapped[str] = mapped_column(String(2048), unique=True)
    last_fetched_at: Mapped[datetime | None] = mapped_column(default=None, index=True)

    # Relationships
    user: Mapped[User] = relationship(back_populates="feeds")
    posts: Mapped[list[Post]] = relationship(back_populates="feed")

    def __repr__(self) -> str:
        return f"<Feed {self.name}: {self.url}>"


class FeedFollow(Base, TimestampMixin):
    """A user following a feed."""

    __tablename__ = "feed_follows"
    __table_args__ = (UniqueConstraint("user_id", "feed_id", name="uq_feed_follows_user_feed"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    feed_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("feeds.id", ondelete="CASCADE"), index=True
    )

    # Relationships
    user: Mapped[User] = relationship(back_populates="feed_follows")

    def __repr__(self) -> str:
        return f"<FeedFollow {self.user_id} -> {self.feed_id}>"
