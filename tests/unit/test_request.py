"""
Unit tests for HTTP request parsing and the request body lifecycle.
"""

from dataclasses import dataclass
from typing import Optional

import pytest

from blogapi.http.request import (
    RequestParser,
    RequestState,
    HTTPParseError,
    DecodeError,
    RequestStateError,
)


@dataclass
class Note:
    title: str
    votes: int
    score: float = 0.0
    parent: Optional[int] = None


class TestRequestParser:
    """Tests for RequestParser.parse_head."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request head."""
        head = RequestParser().parse_head(sample_get_request)

        assert head.method == "GET"
        assert head.target == "/api/posts?limit=5&skip=2"
        assert head.version == "HTTP/1.1"

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that header names are lowercased."""
        head = RequestParser().parse_head(sample_get_request)

        assert head.headers["host"] == "localhost:8080"
        assert head.headers["user-agent"] == "pytest"
        assert head.headers["accept"] == "application/json"

    def test_duplicate_headers_are_joined(self):
        """Test that repeated headers are comma-joined."""
        raw = b"GET / HTTP/1.1\r\nAccept: text/html\r\nAccept: application/json\r\n\r\n"
        head = RequestParser().parse_head(raw)

        assert head.headers["accept"] == "text/html, application/json"

    def test_parse_invalid_method(self):
        """Test that unknown methods are rejected with 405."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse_head(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse_head(raw)

        assert exc_info.value.status_code == 400

    def test_parse_unsupported_version(self):
        """Test that HTTP/2.0 request lines get 505."""
        raw = b"GET / HTTP/2.0\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse_head(raw)

        assert exc_info.value.status_code == 505

    @pytest.mark.parametrize("value", ["abc", "-1", "1.5", "²"])
    def test_invalid_content_length(self, value: str):
        """Test that a non-numeric Content-Length is a 400."""
        raw = f"POST /api/posts HTTP/1.1\r\nContent-Length: {value}\r\n\r\n".encode("utf-8")

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse_head(raw)

        assert exc_info.value.status_code == 400


class TestRequestTarget:
    """Tests for request target validation and query parameters."""

    def test_path_and_query_are_split(self, make_request):
        request = make_request("GET", "/api/posts?limit=5&skip=2")

        assert request.path == "/api/posts"
        assert request.query_string == "limit=5&skip=2"

    def test_path_is_percent_decoded(self, make_request):
        request = make_request("GET", "/api/posts/hello%20world")
        assert request.path == "/api/posts/hello world"

    @pytest.mark.parametrize("target", ["api/posts", "*", "http://example.com/api/posts", ""])
    def test_non_absolute_target_is_rejected(self, make_request, target: str):
        """Test that anything other than an absolute path is a 400."""
        with pytest.raises(HTTPParseError) as exc_info:
            make_request("POST", target)

        assert exc_info.value.status_code == 400

    def test_parent_segment_is_rejected(self, make_request):
        with pytest.raises(HTTPParseError):
            make_request("GET", "/api/../etc/passwd")

    def test_query_param_first_value_wins(self, make_request):
        request = make_request("GET", "/api/posts?limit=5&limit=9")
        assert request.query_param("limit") == "5"

    def test_query_param_decoding(self, make_request):
        request = make_request("GET", "/search?q=hello%20world&tag=")

        assert request.query_param("q") == "hello world"
        assert request.query_param("tag") == ""
        assert request.query_param("missing") is None

    def test_query_param_does_not_touch_body(self, make_request):
        """Test that query lookup works in HEADERS state without reading."""
        request = make_request("POST", "/api/posts?draft=1", body=b'{"a": 1}')

        assert request.query_param("draft") == "1"
        assert request.state is RequestState.HEADERS
        assert request._body_reader.reads == 0


class TestRequestBody:
    """Tests for the HEADERS → BODY transition."""

    def test_starts_in_headers_state(self, make_request):
        request = make_request("POST", "/api/posts", body=b"{}")

        assert request.state is RequestState.HEADERS
        assert request.is_buffered is False

    def test_into_body_reads_once(self, make_request):
        """Test that buffering twice gives the same bytes and reads once."""
        request = make_request("POST", "/api/posts", body=b'{"title": "x"}')

        first = request.into_body()
        first_bytes = first.body
        second = first.into_body()

        assert second is request
        assert second.body == first_bytes == b'{"title": "x"}'
        assert request._body_reader.reads == 1
        assert request.state is RequestState.BODY

    def test_into_body_without_content_length(self, make_request):
        request = make_request("GET", "/api/posts").into_body()

        assert request.body == b""
        assert request._body_reader.reads == 0

    def test_body_in_headers_state_raises(self, make_request):
        request = make_request("POST", "/api/posts", body=b"{}")

        with pytest.raises(RequestStateError):
            request.body

    def test_as_json_in_headers_state_raises(self, make_request):
        request = make_request("POST", "/api/posts", body=b"{}")

        with pytest.raises(RequestStateError):
            request.as_json()

    def test_body_too_large(self, make_request):
        request = make_request("POST", "/api/posts", body=b"x" * 100)
        request.max_body_size = 10

        with pytest.raises(HTTPParseError) as exc_info:
            request.into_body()

        assert exc_info.value.status_code == 413

    def test_incomplete_body(self, make_request):
        """Test that a client sending fewer bytes than announced gets 400."""
        request = make_request(
            "POST", "/api/posts", body=b"{}", headers={"Content-Length": "50"}
        )

        with pytest.raises(HTTPParseError) as exc_info:
            request.into_body()

        assert exc_info.value.status_code == 400


class TestAsJson:
    """Tests for structured body decoding."""

    def test_plain_json(self, make_request):
        request = make_request("POST", "/x", body=b'[1, 2, 3]').into_body()
        assert request.as_json() == [1, 2, 3]

    def test_decode_into_dataclass(self, make_request):
        request = make_request(
            "POST", "/x", body=b'{"title": "t", "votes": 3, "score": 2, "extra": true}'
        ).into_body()

        note = request.as_json(Note)

        assert note == Note(title="t", votes=3, score=2, parent=None)

    def test_invalid_json(self, make_request):
        request = make_request("POST", "/x", body=b"{not json").into_body()

        with pytest.raises(DecodeError):
            request.as_json()

    def test_invalid_utf8(self, make_request):
        request = make_request("POST", "/x", body=b"\xff\xfe").into_body()

        with pytest.raises(DecodeError):
            request.as_json()

    def test_missing_required_field(self, make_request):
        request = make_request("POST", "/x", body=b'{"title": "t"}').into_body()

        with pytest.raises(DecodeError, match="votes"):
            request.as_json(Note)

    @pytest.mark.parametrize("body", [
        b'{"title": 1, "votes": 3}',
        b'{"title": "t", "votes": "3"}',
        b'{"title": "t", "votes": true}',
        b'{"title": "t", "votes": null}',
        b'[{"title": "t", "votes": 3}]',
    ])
    def test_wrong_shape(self, make_request, body: bytes):
        request = make_request("POST", "/x", body=body).into_body()

        with pytest.raises(DecodeError):
            request.as_json(Note)

    def test_optional_field_accepts_null(self, make_request):
        request = make_request(
            "POST", "/x", body=b'{"title": "t", "votes": 1, "parent": null}'
        ).into_body()

        assert request.as_json(Note).parent is None
