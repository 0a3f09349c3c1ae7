"""
=============================================================================
HTTP LAYER
=============================================================================

Request and response lifecycles, route matching and the router.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ONE REQUEST, ONE RESPONSE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   bytes ──► RequestParser.parse_head() ──► Request (HEADERS)        │
    │                                               │ into_body()         │
    │                                               ▼                     │
    │                                            Request (BODY)           │
    │                                               │ as_json(Post)       │
    │                                               ▼                     │
    │   Router.resolve(method, path) ──► handler(ctx, req, resp, params)  │
    │                                               │                     │
    │                                               ▼                     │
    │   Response (FRESH) ──► json()/text() ──► Response (DONE) ──► bytes  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Only HTTP/1.x with Content-Length bodies. No chunked encoding and no
keep-alive: every connection carries exactly one request.

=============================================================================
"""

from .matcher import (
    Matcher,
    RegexMatcher,
    PrefixMatcher,
    RouteDefinitionError,
    RouteParams,
    into_matcher,
)
from .request import (
    Request,
    RequestHead,
    RequestParser,
    RequestState,
    HTTPParseError,
    DecodeError,
    RequestStateError,
)
from .response import (
    Response,
    ResponseState,
    ResponseAlreadySentError,
    format_http_date,
)
from .router import Router, Route, RouteMatch, Handler
from .status_codes import HTTPStatus, coerce_status, status_phrase

__all__ = [
    # Matching
    "Matcher",
    "RegexMatcher",
    "PrefixMatcher",
    "RouteDefinitionError",
    "RouteParams",
    "into_matcher",

    # Requests
    "Request",
    "RequestHead",
    "RequestParser",
    "RequestState",
    "HTTPParseError",
    "DecodeError",
    "RequestStateError",

    # Responses
    "Response",
    "ResponseState",
    "ResponseAlreadySentError",
    "format_http_date",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "Handler",

    # Status codes
    "HTTPStatus",
    "coerce_status",
    "status_phrase",
]
