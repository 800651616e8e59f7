from rssagg.models.base import Base
from rssagg.models.feed import Feed, FeedFollow
from rssagg.models.post import Post
from rssagg.models.user import User

__all__ = [
    "Base",
    "User",
    "Feed",
    "FeedFollow",
    "Post",
]
