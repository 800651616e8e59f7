from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rssagg.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from rssagg.models.feed import Feed


class Post(Base, TimestampMixin):
    """Feed item persisted by the scraper. (feed_id, url) is the dedup key."""

    __tablename__ = "posts"
    __table_args__ = (UniqueConstraint("feed_id", "url", name="uq_posts_feed_url"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    feed_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("feeds.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(Text, default="")
    url: Mapped[str] = mapped_column(String(2048))
    description: Mapped[str | None] = mapped_column(Text)
    published_at: Mapped[datetime | None] = mapped_column(default=None, index=True)

    # Relationships
    feed: Mapped[Feed] = relationship(back_populates="posts")

    def __repr__(self) -> str:
        return f"<Post {self.title[:50]}>"
