"""
=============================================================================
HTTP REQUEST
=============================================================================

Parses the head of an HTTP/1.1 request and models the request as a small
state machine whose body is read from the socket only when someone asks.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       REQUEST STATES                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   socket ──parse_head()──► RequestHead ──Request.from_head()──┐     │
    │                                                               │     │
    │                                                               ▼     │
    │                                    ┌──────────────────────────────┐ │
    │                                    │  HEADERS                     │ │
    │                                    │  method, path, query, headers│ │
    │                                    │  body still in the socket    │ │
    │                                    └──────────────┬───────────────┘ │
    │                                                   │ into_body()     │
    │                                                   │ (reads socket   │
    │                                                   │  exactly once)  │
    │                                                   ▼                 │
    │                                    ┌──────────────────────────────┐ │
    │                                    │  BODY                        │ │
    │                                    │  + buffered body bytes       │ │
    │                                    │  as_json() allowed           │ │
    │                                    └──────────────┬───────────────┘ │
    │                                                   │ into_body()     │
    │                                                   └──► no-op        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Most requests never read their body (GET /api/posts/42), so nothing past
the headers is pulled off the socket unless a handler calls into_body().

Calling as_json() while still in HEADERS is a bug in the calling code and
raises RequestStateError. A body that is not valid JSON is a client problem
and raises DecodeError, which handlers turn into a 400.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union, get_args, get_origin, get_type_hints
from urllib.parse import parse_qs, unquote
import dataclasses
import json
import re


T = TypeVar("T")

# Reads exactly N bytes of body from the transport
BodyReader = Callable[[int], bytes]


class HTTPParseError(Exception):
    """
    Raised when an incoming request cannot be understood.

    Carries the status code the client should receive:

        400 Bad Request                 - malformed line, target or headers
        405 Method Not Allowed          - unknown method
        413 Payload Too Large           - body exceeds the configured limit
        505 HTTP Version Not Supported  - not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(ValueError):
    """Raised when a buffered body does not decode to the requested shape."""


class RequestStateError(RuntimeError):
    """Raised when body content is accessed before the body was buffered."""


class RequestState(Enum):
    """Request lifecycle states."""
    HEADERS = "headers"     # Head parsed, body still unread
    BODY = "body"           # Body fully buffered


@dataclass
class RequestHead:
    """
    The request line and headers, exactly as they came off the wire.

    Header names are lowercased; repeated headers are joined with ", ".
    """

    method: str
    target: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)


class RequestParser:
    """
    Parses the head section of an HTTP request.

    The body is deliberately not part of parsing: it stays in the socket
    until the request moves to the BODY state.

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$

        ([A-Z]+)        METHOD
        ([^ ]+)         request target, validated later by Request.from_head
        (HTTP/\\d\\.\\d)  version
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def parse_head(self, data: bytes) -> RequestHead:
        """
        Parse raw head bytes (everything before the blank line).

        Args:
            data: Request line and header lines, with or without the
                  trailing CRLF CRLF.

        Returns:
            Parsed RequestHead.

        Raises:
            HTTPParseError: If the request line or Content-Length is malformed.
        """
        header_section = data.split(b"\r\n\r\n", 1)[0].decode("latin-1")
        lines = header_section.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request")

        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # ---------------------------------------------------------------------
        # Content-Length must be a non-negative integer if present.
        # The body itself is read later, on demand.
        # ---------------------------------------------------------------------
        if "content-length" in headers:
            value = headers["content-length"]
            if not (value.isascii() and value.isdigit()):
                raise HTTPParseError(f"Invalid Content-Length: {value!r}")

        return RequestHead(method=method, target=target, version=version, headers=headers)

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Split "METHOD SP TARGET SP VERSION" and validate method and version.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        return method, target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse "Name: Value" lines into a lowercase-keyed dict.

        Continuation lines (leading whitespace) extend the previous header.
        Lines that do not look like headers are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


class Request:
    """
    An inbound request moving from HEADERS to BODY state.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, POST, PUT, DELETE, ...
        target:         Raw request target ("/api/posts?limit=5")
        path:           Percent-decoded path ("/api/posts")
        query_string:   Raw query string ("limit=5")
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Lowercase header name → value
        client_address: (ip, port) of the peer
        state:          RequestState.HEADERS or RequestState.BODY

    =========================================================================
    USAGE IN A HANDLER
    =========================================================================

        def update_post(ctx, request, response, params):
            request = request.into_body()       # HEADERS → BODY
            post = request.as_json(Post)        # DecodeError on bad input
            ...

    =========================================================================
    """

    def __init__(
        self,
        method: str,
        target: str,
        version: str = "HTTP/1.1",
        headers: Optional[Dict[str, str]] = None,
        body_reader: Optional[BodyReader] = None,
        client_address: tuple[str, int] = ("", 0),
        max_body_size: int = 10 * 1024 * 1024,
    ):
        """
        Build a request in HEADERS state.

        Args:
            method: HTTP method
            target: Request target from the request line
            version: HTTP version string
            headers: Lowercase header map
            body_reader: Callable that reads N body bytes from the transport.
                         None means the request has no readable body.
            client_address: Peer (ip, port)
            max_body_size: Largest Content-Length into_body() will accept

        Raises:
            HTTPParseError: If target is not an absolute path (400).
        """
        path, query_string = _split_target(target)

        self.method = method
        self.target = target
        self.path = path
        self.query_string = query_string
        self.version = version
        self.headers: Dict[str, str] = headers or {}
        self.client_address = client_address
        self.max_body_size = max_body_size
        self.state = RequestState.HEADERS

        self._body_reader = body_reader
        self._body: bytes = b""
        self._query: Optional[Dict[str, list[str]]] = None

    @classmethod
    def from_head(
        cls,
        head: RequestHead,
        body_reader: Optional[BodyReader] = None,
        client_address: tuple[str, int] = ("", 0),
        max_body_size: int = 10 * 1024 * 1024,
    ) -> "Request":
        """Build a HEADERS-state request from a parsed head."""
        return cls(
            method=head.method,
            target=head.target,
            version=head.version,
            headers=head.headers,
            body_reader=body_reader,
            client_address=client_address,
            max_body_size=max_body_size,
        )

    # =========================================================================
    # HEADER ACCESSORS
    # =========================================================================

    @property
    def content_length(self) -> int:
        """Content-Length as an integer, 0 if absent."""
        value = self.headers.get("content-length", "")
        return int(value) if value.isascii() and value.isdigit() else 0

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json")."""
        ct = self.headers.get("content-type", "").split(";")[0].strip().lower()
        return ct or None

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    # =========================================================================
    # QUERY STRING (available in both states)
    # =========================================================================

    def query_param(self, name: str) -> Optional[str]:
        """
        Get the first value of a query parameter.

        Values are percent-decoded; blank values are kept as "".

            /api/posts?limit=5&limit=9   → query_param("limit") == "5"
            /api/posts?tag=              → query_param("tag") == ""
            /api/posts                   → query_param("limit") is None
        """
        if self._query is None:
            self._query = parse_qs(self.query_string, keep_blank_values=True)
        values = self._query.get(name)
        return values[0] if values else None

    # =========================================================================
    # BODY STATE MACHINE
    # =========================================================================

    @property
    def is_buffered(self) -> bool:
        return self.state is RequestState.BODY

    def into_body(self) -> "Request":
        """
        Move to BODY state, reading the body off the transport.

        The transport is read only on the first call. Later calls return
        the same request with the same bytes.

        Returns:
            This request, now in BODY state.

        Raises:
            HTTPParseError: If Content-Length exceeds max_body_size (413)
                            or the client sent fewer bytes than announced.
        """
        if self.state is RequestState.BODY:
            return self

        length = self.content_length
        if length > self.max_body_size:
            raise HTTPParseError(f"Request body too large: {length} bytes", status_code=413)

        data = b""
        if length and self._body_reader is not None:
            data = self._body_reader(length)
        if len(data) < length:
            raise HTTPParseError(f"Incomplete body: expected {length} bytes, got {len(data)}")

        self._body = data[:length]
        self.state = RequestState.BODY
        return self

    @property
    def body(self) -> bytes:
        """The buffered body. Only defined in BODY state."""
        self._require_body()
        return self._body

    def as_json(self, shape: Optional[Type[T]] = None) -> Union[T, Any]:
        """
        Decode the buffered body as JSON.

        Args:
            shape: Optional dataclass type. When given, the body must be a
                   JSON object and is converted into an instance of it.
                   When omitted, the plain decoded value is returned.

        Returns:
            Decoded value or shape instance

        Raises:
            RequestStateError: If called before into_body()
            DecodeError: If the body is not valid JSON or does not fit shape
        """
        self._require_body()

        try:
            data = json.loads(self._body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(f"Invalid JSON body: {e}") from e

        if shape is None:
            return data
        return decode_dataclass(shape, data)

    def _require_body(self) -> None:
        if self.state is not RequestState.BODY:
            raise RequestStateError("Request body has not been buffered; call into_body() first")

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.target} [{self.state.value}]>"


# =============================================================================
# HELPERS
# =============================================================================

def _split_target(target: str) -> tuple[str, str]:
    """
    Split an origin-form request target into (decoded path, raw query).

    Only absolute paths are accepted:

        "/api/posts?limit=5"   → ("/api/posts", "limit=5")
        "/api/a%20b"           → ("/api/a b", "")
        "*"                    → HTTPParseError
        "http://host/api"      → HTTPParseError
        "api/posts"            → HTTPParseError
    """
    if not target.startswith("/"):
        raise HTTPParseError(f"Request target is not an absolute path: {target!r}")

    target = target.split("#", 1)[0]
    raw_path, _, query_string = target.partition("?")
    path = unquote(raw_path)

    if ".." in path.split("/"):
        raise HTTPParseError("Invalid path: contains ..")

    return path, query_string


_PRIMITIVES = (str, int, float, bool)


def decode_dataclass(shape: Type[T], data: Any) -> T:
    """
    Build a dataclass instance from a decoded JSON value.

    Each field is filled from the key of the same name. Unknown keys are
    ignored. Fields without a default must be present. Values for ``str``,
    ``int``, ``float`` and ``bool`` fields (and ``Optional`` of those) must
    already have the right JSON type; no string coercion is done.

    Raises:
        DecodeError: If data is not an object, a required field is missing,
                     or a value has the wrong type.
    """
    if not dataclasses.is_dataclass(shape):
        raise TypeError(f"{shape!r} is not a dataclass type")
    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object for {shape.__name__}, got {type(data).__name__}")

    hints = get_type_hints(shape)
    kwargs: Dict[str, Any] = {}

    for f in dataclasses.fields(shape):
        if not f.init:
            continue

        if f.name not in data:
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                raise DecodeError(f"Missing field {f.name!r} for {shape.__name__}")
            continue

        value = data[f.name]
        _check_type(f.name, value, hints.get(f.name, Any))
        kwargs[f.name] = value

    return shape(**kwargs)


def _check_type(name: str, value: Any, annotation: Any) -> None:
    allowed = annotation
    optional = False

    if get_origin(annotation) is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        optional = len(args) < len(get_args(annotation))
        allowed = args[0] if len(args) == 1 else Any

    if value is None:
        if optional or allowed not in _PRIMITIVES:
            return
        raise DecodeError(f"Field {name!r} must not be null")

    if allowed not in _PRIMITIVES:
        return

    # bool is a subclass of int; JSON true must not pass as a number
    if isinstance(value, bool) and allowed is not bool:
        raise DecodeError(f"Field {name!r} must be {allowed.__name__}, got bool")
    if allowed is float and isinstance(value, int):
        return
    if not isinstance(value, allowed):
        raise DecodeError(f"Field {name!r} must be {allowed.__name__}, got {type(value).__name__}")
