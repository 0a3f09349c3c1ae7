"""
=============================================================================
BLOG API ROUTES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         ROUTE TABLE                                 │
    ├─────────┬─────────────────────────────────────┬─────────────────────┤
    │ GET     │ ^/api/posts/(?P<id>[0-9]{1,10})/?$  │ get_post            │
    │ GET     │ ^/api/posts/(?P<fragment>.+?)/?$    │ get_post_by_fragment│
    │ GET     │ /api/posts                (prefix)  │ list_posts          │
    │ POST    │ ^/api/posts/?$                      │ create_post   201   │
    │ PUT     │ ^/api/posts/?$                      │ update_post   200   │
    │ DELETE  │ ^/api/posts/(?P<id>[0-9]{1,10})/?$  │ delete_post   204   │
    └─────────┴─────────────────────────────────────┴─────────────────────┘

Order matters: /api/posts/42 also matches the fragment route, and
/api/posts/anything also matches the list prefix. The id route is tried
first, then fragments, then the listing.

Every handler finishes the response exactly once, including on failure:

    DecodeError        → 400 {"error": "..."}
    redis.RedisError   → 503 {"error": "Storage unavailable"}

=============================================================================
"""

import functools
import logging
import re
from dataclasses import dataclass
from typing import Any

import redis

from ..config import ServerConfig
from ..http import DecodeError, HTTPStatus, PrefixMatcher, RegexMatcher, Request, Response, Router
from ..http.router import Handler
from ..middleware import LoggingMiddleware, MiddlewarePipeline
from ..server import HTTPServer
from .posts import Post, PostService


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_SKIP = 0


# =============================================================================
# PER-REQUEST CONTEXT
# =============================================================================

@dataclass
class BlogContext:
    """What every blog handler gets as ctx."""
    posts: PostService


class BlogContextFactory:
    """
    Builds a BlogContext per request.

    All contexts share one redis.ConnectionPool, which is safe for
    concurrent checkout; each context gets its own lightweight client.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self.pool = pool

    def __call__(self) -> BlogContext:
        client = redis.Redis(connection_pool=self.pool)
        return BlogContext(posts=PostService(client))


# =============================================================================
# HELPERS
# =============================================================================

def storage_errors(handler: Handler) -> Handler:
    """Turn redis.RedisError from a handler into a 503 response."""

    @functools.wraps(handler)
    def wrapper(ctx: Any, request: Request, response: Response, params: dict):
        try:
            return handler(ctx, request, response, params)
        except redis.RedisError as e:
            if response.headers_written:
                raise
            logger.error(f"Storage error in {handler.__name__}: {e}")
            return request, response.json(
                {"error": "Storage unavailable"},
                status=HTTPStatus.SERVICE_UNAVAILABLE,
            )

    return wrapper


def int_query_param(request: Request, name: str, default: int) -> int:
    """
    Read a non-negative integer query parameter.

    Missing, non-numeric or negative values give the default.
    """
    value = request.query_param(name)
    if value is None or not (value.isascii() and value.isdigit()):
        return default
    return int(value)


def not_found(request: Request, response: Response, what: str):
    return request, response.json({"error": f"{what} not found"}, status=HTTPStatus.NOT_FOUND)


def bad_request(request: Request, response: Response, message: str):
    return request, response.json({"error": message}, status=HTTPStatus.BAD_REQUEST)


# =============================================================================
# HANDLERS
# =============================================================================

@storage_errors
def get_post(ctx: BlogContext, request: Request, response: Response, params: dict):
    post = ctx.posts.get(int(params["id"]))
    if post is None:
        return not_found(request, response, "Post")
    return request, response.json(post.to_dict())


@storage_errors
def get_post_by_fragment(ctx: BlogContext, request: Request, response: Response, params: dict):
    post = ctx.posts.get_by_fragment(params["fragment"])
    if post is None:
        return not_found(request, response, "Post")
    return request, response.json(post.to_dict())


@storage_errors
def list_posts(ctx: BlogContext, request: Request, response: Response, params: dict):
    limit = int_query_param(request, "limit", DEFAULT_LIMIT)
    skip = int_query_param(request, "skip", DEFAULT_SKIP)

    posts = ctx.posts.list(limit, skip)
    return request, response.json([post.to_dict() for post in posts])


@storage_errors
def create_post(ctx: BlogContext, request: Request, response: Response, params: dict):
    request = request.into_body()
    try:
        post = request.as_json(Post)
    except DecodeError as e:
        return bad_request(request, response, str(e))

    created = ctx.posts.create(post)
    return request, response.json(created.to_dict(), status=HTTPStatus.CREATED)


@storage_errors
def update_post(ctx: BlogContext, request: Request, response: Response, params: dict):
    request = request.into_body()
    try:
        post = request.as_json(Post)
    except DecodeError as e:
        return bad_request(request, response, str(e))

    if post.id is None:
        return bad_request(request, response, "Post id is required")

    updated = ctx.posts.update(post)
    return request, response.json(updated.to_dict())


@storage_errors
def delete_post(ctx: BlogContext, request: Request, response: Response, params: dict):
    ctx.posts.delete(int(params["id"]))
    return request, response.text("", status=HTTPStatus.NO_CONTENT)


# =============================================================================
# ASSEMBLY
# =============================================================================

def build_router() -> Router:
    """The blog route table, in match order."""
    router = Router()

    router.add("GET", RegexMatcher(r"^/api/posts/(?P<id>[0-9]{1,10})/?$"), get_post)
    router.add("GET", RegexMatcher(r"^/api/posts/(?P<fragment>.+?)/?$"), get_post_by_fragment)
    router.add("GET", PrefixMatcher("/api/posts"), list_posts)
    router.add("POST", re.compile(r"^/api/posts/?$"), create_post)
    router.add("PUT", re.compile(r"^/api/posts/?$"), update_post)
    router.add("DELETE", RegexMatcher(r"^/api/posts/(?P<id>[0-9]{1,10})/?$"), delete_post)

    return router


def build_pipeline(router: Router, log_format: str = "text") -> MiddlewarePipeline:
    """Logging first, router last."""
    return MiddlewarePipeline().use(LoggingMiddleware(log_format=log_format), router)


def create_app(config: ServerConfig, pool: redis.ConnectionPool, log_format: str = "text") -> HTTPServer:
    """
    Wire config, Redis pool, pipeline and router into a server.

    Example:
        pool = redis.ConnectionPool.from_url(config.redis_url, decode_responses=True)
        create_app(config, pool).run()
    """
    pipeline = build_pipeline(build_router(), log_format=log_format)
    return HTTPServer(config, BlogContextFactory(pool), pipeline)
