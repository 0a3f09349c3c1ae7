"""
=============================================================================
HTTP RESPONSE
=============================================================================

A write-once response bound to the client's socket.

=============================================================================
RESPONSE LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       RESPONSE STATES                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ┌──────────┐  write_head()   ┌─────────────────┐                  │
    │   │  FRESH   │ ──────────────► │ HEADERS_WRITTEN │                  │
    │   │          │                 │ status + headers│                  │
    │   │ status,  │                 │ on the wire     │                  │
    │   │ headers  │                 └────────┬────────┘                  │
    │   │ editable │                          │ json() / text()           │
    │   └────┬─────┘                          ▼                           │
    │        │        json() / text()   ┌──────────┐                      │
    │        └────────────────────────► │   DONE   │ ── any write ──► ✗   │
    │                                   └──────────┘  ResponseAlreadySent │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

json() and text() are the only ways to reach DONE. Once DONE, every write
raises ResponseAlreadySentError before a single byte reaches the socket, so
a client can never see two responses for one request.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 200 OK\\r\\n
    Content-Type: application/json\\r\\n
    Content-Length: 27\\r\\n        ← always computed from the body
    Date: Wed, 01 Jan 2026 ...\\r\\n
    Server: BlogAPI/1.0\\r\\n
    Connection: close\\r\\n         ← one request per connection
    \\r\\n
    {"id": 42, "title": "..."}

1xx, 204 and 304 responses carry no body, so their head has neither
Content-Length nor Content-Type; any body passed with them must be empty.

=============================================================================
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union
import dataclasses
import json
import logging

from .status_codes import HTTPStatus, coerce_status, status_phrase


logger = logging.getLogger(__name__)

# Sends bytes to the client; returns False if the peer is gone
ResponseWriter = Callable[[bytes], bool]

DEFAULT_SERVER_NAME = "BlogAPI/1.0"


class ResponseAlreadySentError(RuntimeError):
    """Raised on any attempt to change a response that is already committed."""


class ResponseState(Enum):
    """Response lifecycle states."""
    FRESH = "fresh"                       # Nothing written yet
    HEADERS_WRITTEN = "headers_written"   # Status line and headers sent
    DONE = "done"                         # Body sent; terminal


class Response:
    """
    The response half of a request, written directly to the transport.

    Usage:
        response.set_header("X-Request-ID", "a1b2c3d4")
        return request, response.json({"id": 42}, status=HTTPStatus.OK)

    Attributes:
        status: Status code to send (default 200)
        headers: Extra headers to send
        state: ResponseState
        bytes_sent: Total bytes handed to the transport
    """

    def __init__(
        self,
        writer: ResponseWriter,
        server_name: str = DEFAULT_SERVER_NAME,
        version: str = "HTTP/1.1",
    ):
        self.status = HTTPStatus.OK
        self.headers: Dict[str, str] = {}
        self.state = ResponseState.FRESH
        self.bytes_sent = 0
        self.version = version
        self.server_name = server_name

        self._writer = writer
        self._committed_length: Optional[int] = None

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def is_done(self) -> bool:
        return self.state is ResponseState.DONE

    @property
    def headers_written(self) -> bool:
        return self.state is not ResponseState.FRESH

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 404 Not Found" """
        return f"{self.version} {int(self.status)} {status_phrase(self.status)}"

    # =========================================================================
    # FRESH-STATE MUTATORS
    # =========================================================================

    def set_status(self, status: Union[HTTPStatus, int]) -> "Response":
        """Set the status code. Only allowed before headers are written."""
        self._require_fresh()
        self.status = coerce_status(status)
        return self

    def set_header(self, name: str, value: str) -> "Response":
        """Set a header. Only allowed before headers are written."""
        self._require_fresh()
        self.headers[name] = value
        return self

    # =========================================================================
    # WRITES
    # =========================================================================

    def write_head(
        self,
        content_length: int,
        status: Optional[Union[HTTPStatus, int]] = None,
        content_type: Optional[str] = None,
    ) -> "Response":
        """
        Commit the status line and headers (FRESH → HEADERS_WRITTEN).

        The body that follows must be exactly content_length bytes.

        Args:
            content_length: Length of the body that json()/text() will send
            status: Optional status override
            content_type: Optional Content-Type

        Returns:
            This response, now HEADERS_WRITTEN.

        Raises:
            ResponseAlreadySentError: If headers were already written
            ConnectionError: If the client went away
        """
        self._require_fresh()

        if status is not None:
            self.status = coerce_status(status)
        if content_type is not None:
            self.headers["Content-Type"] = content_type

        if content_length and _forbids_body(self.status):
            raise ValueError(f"Status {int(self.status)} cannot carry a body")

        head = self._serialize_head(content_length)
        self._committed_length = content_length
        self.state = ResponseState.HEADERS_WRITTEN
        self._send(head)
        return self

    def json(
        self,
        payload: Any,
        status: Optional[Union[HTTPStatus, int]] = None,
    ) -> "Response":
        """
        Send a JSON body and finish the response.

        Dataclass instances anywhere in payload are serialized as objects.

        Returns:
            This response, now DONE.
        """
        body = json.dumps(payload, default=_json_default).encode("utf-8")
        return self._finish(body, status, "application/json")

    def text(
        self,
        body: str,
        status: Optional[Union[HTTPStatus, int]] = None,
        content_type: str = "text/plain; charset=utf-8",
    ) -> "Response":
        """
        Send a text body and finish the response.

        Returns:
            This response, now DONE.
        """
        return self._finish(body.encode("utf-8"), status, content_type)

    def _finish(
        self,
        body: bytes,
        status: Optional[Union[HTTPStatus, int]],
        content_type: str,
    ) -> "Response":
        if self.state is ResponseState.DONE:
            raise ResponseAlreadySentError("Response already sent")

        if self.state is ResponseState.FRESH:
            if status is not None:
                self.status = coerce_status(status)
            self.headers.setdefault("Content-Type", content_type)
            if body and _forbids_body(self.status):
                raise ValueError(f"Status {int(self.status)} cannot carry a body")
            data = self._serialize_head(len(body)) + body
        else:
            if status is not None and coerce_status(status) != self.status:
                raise ResponseAlreadySentError(f"Status {int(self.status)} already committed")
            if len(body) != self._committed_length:
                raise ValueError(
                    f"Body is {len(body)} bytes but Content-Length {self._committed_length} "
                    "was already committed"
                )
            data = body

        self.state = ResponseState.DONE
        self._send(data)
        return self

    def _send(self, data: bytes) -> None:
        """
        Hand bytes to the transport.

        A failed send leaves the response DONE: nothing more can be written
        to a peer that has disconnected.
        """
        if not self._writer(data):
            self.state = ResponseState.DONE
            logger.debug(f"Send failed after {self.bytes_sent} bytes")
            raise ConnectionError("Client disconnected while writing response")
        self.bytes_sent += len(data)

    def _serialize_head(self, content_length: int) -> bytes:
        """
        Build the status line and header block.

        Content-Length, Date, Server and Connection are always set here;
        Content-Length from the caller overrides anything set by hand.
        Bodiless statuses drop Content-Length and Content-Type.
        """
        response_headers = dict(self.headers)
        if _forbids_body(self.status):
            response_headers.pop("Content-Length", None)
            response_headers.pop("Content-Type", None)
        else:
            response_headers["Content-Length"] = str(content_length)
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", self.server_name)
        response_headers["Connection"] = "close"

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("latin-1") + b"\r\n"

    def _require_fresh(self) -> None:
        if self.state is not ResponseState.FRESH:
            raise ResponseAlreadySentError(f"Response headers already written ({self.state.value})")

    def __repr__(self) -> str:
        return f"<Response {int(self.status)} [{self.state.value}]>"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _forbids_body(status: int) -> bool:
    """1xx, 204 No Content and 304 Not Modified never have a message body."""
    return status < 200 or status in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)
