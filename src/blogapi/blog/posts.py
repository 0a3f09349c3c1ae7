"""
Blog post entity and its Redis-backed service.

Storage layout:

    posts:{id}                 hash   id, title, content, date, authorId, urlFragment
    postFragment:{fragment}    string id of the post with that URL fragment

Field names are snake_case in JSON and camelCase in the hash.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import redis


logger = logging.getLogger(__name__)

POST_KEY = "posts:{id}"
FRAGMENT_KEY = "postFragment:{fragment}"


@dataclass
class Post:
    """A blog post. id is None for a post that has not been stored yet."""

    title: str
    content: str
    date: int               # Unix timestamp, seconds
    author_id: int
    url_fragment: str
    id: Optional[int] = None

    def to_dict(self) -> dict:
        """JSON form, id first."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "date": self.date,
            "author_id": self.author_id,
            "url_fragment": self.url_fragment,
        }

    def to_redis_hash(self) -> Dict[str, str]:
        """Hash form; a missing id is stored as an empty string."""
        return {
            "id": "" if self.id is None else str(self.id),
            "title": self.title,
            "content": self.content,
            "date": str(self.date),
            "authorId": str(self.author_id),
            "urlFragment": self.url_fragment,
        }

    @classmethod
    def from_redis_hash(cls, data: Dict[str, str]) -> "Post":
        """
        Build a post from an HGETALL result.

        Raises:
            ValueError: If a numeric field is missing or not a number
        """
        raw_id = data.get("id", "")
        return cls(
            id=int(raw_id) if raw_id else None,
            title=data.get("title", ""),
            content=data.get("content", ""),
            date=int(data.get("date", "0")),
            author_id=int(data.get("authorId", "0")),
            url_fragment=data.get("urlFragment", ""),
        )


class PostService:
    """
    Post storage on a Redis client.

    The client is expected to decode responses to str
    (``decode_responses=True`` on the pool). redis.RedisError from the
    client propagates to the caller.

    list, create, update and delete do not change storage yet: list returns
    nothing and the write operations hand back what they were given.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    def list(self, limit: int, skip: int) -> List[Post]:
        logger.debug(f"Listing posts (limit={limit}, skip={skip})")
        return []

    def get(self, post_id: int) -> Optional[Post]:
        """Fetch a post by id; None if there is no such hash."""
        data = self._client.hgetall(POST_KEY.format(id=post_id))
        if not data:
            return None
        return Post.from_redis_hash(data)

    def get_by_fragment(self, fragment: str) -> Optional[Post]:
        """Resolve a URL fragment to an id, then fetch that post."""
        raw_id = self._client.get(FRAGMENT_KEY.format(fragment=fragment))
        if raw_id is None:
            return None

        raw_id = str(raw_id)
        if not (raw_id.isascii() and raw_id.isdigit()):
            logger.warning(f"Fragment {fragment!r} points at non-numeric id {raw_id!r}")
            return None

        return self.get(int(raw_id))

    def create(self, post: Post) -> Post:
        logger.debug(f"Create requested for post {post.url_fragment!r}")
        return post

    def update(self, post: Post) -> Post:
        if post.id is None:
            return post

        if not self._client.exists(POST_KEY.format(id=post.id)):
            logger.debug(f"Update requested for unknown post {post.id}")
        return post

    def delete(self, post_id: int) -> None:
        logger.debug(f"Delete requested for post {post_id}")
