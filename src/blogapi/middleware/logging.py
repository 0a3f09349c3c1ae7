"""
=============================================================================
LOGGING MIDDLEWARE
=============================================================================

Logs every request as it enters the pipeline and tags the response with a
correlation ID.

This stage only observes: it never finishes the response, so the stages
after it always run. The matching completion line (status and duration)
is written by the server loop on the "blogapi.access" logger once the
response is on the wire.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ [a1b2c3d4] Incoming request to: /api/posts?limit=5 from 127.0.0.1  │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (for log aggregators):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET",                        │
    │  "target": "/api/posts?limit=5", "client_ip": "127.0.0.1",         │
    │  "user_agent": "curl/8.5.0"}                                        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import json
import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Optional

from .base import Middleware, StageResult
from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)


@dataclass
class IncomingRequest:
    """Structured log entry for a request entering the pipeline."""

    request_id: str
    method: str
    target: str
    client_ip: str
    user_agent: str

    def to_dict(self) -> dict:
        return asdict(self)

    def to_text(self) -> str:
        return f"[{self.request_id}] Incoming request to: {self.target} from {self.client_ip}"


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Should be FIRST in the pipeline so it sees requests that later stages
    reject:

        pipeline.add(LoggingMiddleware())  # FIRST
        pipeline.add(router)

    Usage:
        pipeline.add(LoggingMiddleware(log_format="json"))
        pipeline.add(LoggingMiddleware(skip_paths=["/health"]))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        """
        Initialize logging middleware.

        Args:
            log_format: "text" (human readable) or "json" (machine parseable)
            include_request_id: Add an X-Request-ID header to the response
            log_level: Logging level for the incoming-request line
            skip_paths: Paths that are not logged
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"Unknown log format: {log_format!r}")

        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, ctx: Any, request: Request, response: Response) -> StageResult:
        # 8 hex chars of a UUIDv4 is plenty to correlate lines from one process
        request_id = uuid.uuid4().hex[:8]

        if self.include_request_id and not response.headers_written:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return request, response

        entry = IncomingRequest(
            request_id=request_id,
            method=request.method,
            target=request.target,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return request, response
