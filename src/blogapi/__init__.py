"""
=============================================================================
BLOG API
=============================================================================

A blog post HTTP API served by a small thread-per-connection HTTP/1.1
server with a pattern-matching router and a middleware pipeline.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          PACKAGE LAYOUT                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   blogapi.core         sockets, connections, accept loop            │
    │   blogapi.http         request/response lifecycles, matchers,       │
    │                        router, status codes                         │
    │   blogapi.middleware   pipeline, logging stage                      │
    │   blogapi.server       HTTPServer: one request per connection       │
    │   blogapi.config       ServerConfig from environment                │
    │   blogapi.blog         Post, PostService (Redis), route table       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Run it with ``python -m blogapi``.

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig

__all__ = ["HTTPServer", "ServerConfig", "__version__"]
