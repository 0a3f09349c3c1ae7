"""
=============================================================================
MIDDLEWARE FRAMEWORK
=============================================================================

Middleware is code that runs between parsing a request and the route
handler. Stages run in a straight line:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    MIDDLEWARE PIPELINE                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   (ctx, request, response)                                           │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌──────────────────┐                                              │
    │   │ LoggingMiddleware│ ──► Logs "Incoming request to: ..."          │
    │   └────────┬─────────┘                                              │
    │            ▼                                                         │
    │   ┌──────────────────┐                                              │
    │   │      Router      │ ──► Handler finishes the response            │
    │   └────────┬─────────┘     (or 404 when nothing matches)            │
    │            ▼                                                         │
    │   response DONE → remaining stages are skipped                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
AVAILABLE MIDDLEWARE
=============================================================================

LoggingMiddleware:
    Logs each incoming request and adds an X-Request-ID header.

FunctionMiddleware / function_middleware:
    Turn a plain (ctx, request, response) function into a stage.

=============================================================================
"""

from .base import (
    Middleware,
    MiddlewarePipeline,
    FunctionMiddleware,
    function_middleware,
)
from .logging import LoggingMiddleware

__all__ = [
    # Base classes
    "Middleware",
    "MiddlewarePipeline",
    "FunctionMiddleware",
    "function_middleware",

    # Built-in middleware
    "LoggingMiddleware",
]
