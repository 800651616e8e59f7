from __future__ import annotations

import secrets
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rssagg.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from rssagg.models.feed import Feed, FeedFollow


def generate_api_key() -> str:
    """Generate a 64-character hex API key."""
    return secrets.token_hex(32)


class User(Base, TimestampMixin):
    """Account that owns and follows feeds."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255))
    api_key: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, default=generate_api_key
    )

    # Relationships
    feeds: Mapped[list[Feed]] = relationship(back_populates="user")
    feed_follows: Mapped[list[FeedFollow]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return f"<User {self.name}>"
