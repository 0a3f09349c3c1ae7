"""
The blog application: posts on Redis, served under /api/posts.
"""

from .posts import Post, PostService
from .routes import (
    BlogContext,
    BlogContextFactory,
    build_router,
    build_pipeline,
    create_app,
)

__all__ = [
    "Post",
    "PostService",
    "BlogContext",
    "BlogContextFactory",
    "build_router",
    "build_pipeline",
    "create_app",
]
