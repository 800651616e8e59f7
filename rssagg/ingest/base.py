import enum
import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class RawFeedItem(BaseModel):
    """A single <item> as found in the document. Missing fields are empty strings."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


class RawFeedDocument(BaseModel):
    """Parsed <channel>. Lives only for the duration of one fetch."""

    title: str = ""
    link: str = ""
    description: str = ""
    language: str = ""
    items: list[RawFeedItem] = Field(default_factory=list)


class PostCandidate(BaseModel):
    """Normalized item, ready to be stored as a Post."""

    feed_id: uuid.UUID
    title: str
    url: str
    description: str | None = None
    published_at: datetime | None = None


class FeedOutcome(str, enum.Enum):
    """How a single feed's fetch cycle ended."""

    SUCCESS = "success"
    MARK_ERROR = "mark_error"
    FETCH_ERROR = "fetch_error"
    PARSE_ERROR = "parse_error"
    UNEXPECTED_ERROR = "unexpected_error"


class FeedResult(BaseModel):
    """Outcome of one worker invocation."""

    feed_id: uuid.UUID
    feed_name: str
    feed_url: str
    outcome: FeedOutcome = FeedOutcome.SUCCESS
    items_found: int = 0
    posts_created: int = 0
    duplicates: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    error: str | None = None


class BatchResult(BaseModel):
    """One scheduler tick: the selected feeds and what happened to each."""

    started_at: datetime
    finished_at: datetime | None = None
    selected: int = 0
    selection_failed: bool = False
    error: str | None = None
    results: list[FeedResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.outcome == FeedOutcome.SUCCESS)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def posts_created(self) -> int:
        return sum(r.posts_created for r in self.results)

    def summary(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "selected": self.selected,
            "selection_failed": self.selection_failed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "posts_created": self.posts_created,
        }
