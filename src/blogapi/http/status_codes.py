"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Status codes the blog API can put on the wire, with their reason phrases.

=============================================================================
WHERE EACH CODE COMES FROM
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ Handlers                                                  │
    │        │   200 OK          - read/update succeeded, or the server  │
    │        │                     finalized an unanswered request       │
    │        │   201 Created     - POST /api/posts                       │
    │        │   204 No Content  - DELETE /api/posts/:id                 │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ Parser, router and handlers                               │
    │        │   400 Bad Request - malformed target or JSON body         │
    │        │   404 Not Found   - no route, or no such post             │
    │        │   405 / 505       - unknown method / HTTP version         │
    │        │   408 / 413       - slow client / oversized request       │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ Server loop and handlers                                  │
    │        │   500             - a middleware stage raised             │
    │        │   503             - Redis unavailable                     │
    └────────┴───────────────────────────────────────────────────────────┘

Handlers are not limited to these. Any code from 100 to 599 can be sent:
coerce_status() turns known codes into HTTPStatus members and passes other
valid codes through as plain ints, which go out with the phrase "Unknown".

=============================================================================
"""

from enum import IntEnum
from typing import Union


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 1xx INFORMATIONAL
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204
    PARTIAL_CONTENT = 206

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405            # Parser rejects unknown methods
    NOT_ACCEPTABLE = 406
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    GONE = 410
    LENGTH_REQUIRED = 411
    PRECONDITION_FAILED = 412
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    UNSUPPORTED_MEDIA_TYPE = 415
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx status code."""
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """Check if this is a 4xx or 5xx status code."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.SWITCHING_PROTOCOLS: "Switching Protocols",
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.SEE_OTHER: "See Other",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.TEMPORARY_REDIRECT: "Temporary Redirect",
    HTTPStatus.PERMANENT_REDIRECT: "Permanent Redirect",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.NOT_ACCEPTABLE: "Not Acceptable",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.CONFLICT: "Conflict",
    HTTPStatus.GONE: "Gone",
    HTTPStatus.LENGTH_REQUIRED: "Length Required",
    HTTPStatus.PRECONDITION_FAILED: "Precondition Failed",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.URI_TOO_LONG: "URI Too Long",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
    HTTPStatus.UNPROCESSABLE_ENTITY: "Unprocessable Entity",
    HTTPStatus.TOO_MANY_REQUESTS: "Too Many Requests",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.GATEWAY_TIMEOUT: "Gateway Timeout",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


# =============================================================================
# ARBITRARY CODES
# =============================================================================

def coerce_status(code: Union[HTTPStatus, int]) -> int:
    """
    Validate a status code chosen by a handler.

        coerce_status(404)  → HTTPStatus.NOT_FOUND
        coerce_status(299)  → 299
        coerce_status(700)  → ValueError

    Raises:
        ValueError: If code is not an int from 100 to 599
    """
    if isinstance(code, bool) or not isinstance(code, int):
        raise ValueError(f"Status code must be an int, got {code!r}")
    if not 100 <= code <= 599:
        raise ValueError(f"Status code out of range: {code}")

    try:
        return HTTPStatus(code)
    except ValueError:
        return int(code)


def status_phrase(code: int) -> str:
    """Reason phrase for any code; "Unknown" for codes without a member."""
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown"
