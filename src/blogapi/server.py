"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

The orchestrator: accepts connections, parses one request per connection,
runs the middleware pipeline and guarantees the client gets exactly one
response.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTP SERVER ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────────┐    │
    │    │ SocketServer │    │ thread per   │    │ context_factory  │    │
    │    │ (accepting)  │    │ connection   │    │ (per request)    │    │
    │    └──────┬───────┘    └──────┬───────┘    └──────────────────┘    │
    │           ▼                   ▼                                     │
    │    ┌──────────────┐    ┌──────────────────────────────────────┐    │
    │    │  Connection  │    │ MiddlewarePipeline: Logging → Router │    │
    │    └──────────────┘    └──────────────────────────────────────┘    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. ACCEPT
       └── SocketServer accepts; a daemon thread takes the connection

    2. READ + PARSE HEAD
       └── Malformed → error status (400/405/505) sent right away;
           no context is built and no stage runs

    3. BUILD CONTEXT
       └── context_factory() once per request

    4. PIPELINE
       └── Stages run until one finishes the response

    5. FINALIZE
       ├── A stage raised and nothing was sent → 500 JSON error
       └── Nobody answered → empty 200

    6. ACCESS LOG + CLOSE
       └── One line on "blogapi.access", then the socket is closed

=============================================================================
"""

import logging
import threading
import time
from typing import Any, Callable, Optional, Set

from .config import ServerConfig
from .core import SocketServer, Connection
from .http import (
    Request, RequestParser, HTTPParseError,
    Response, ResponseAlreadySentError, HTTPStatus,
)
from .middleware import MiddlewarePipeline
from .middleware.base import Stage


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("blogapi.access")


# Builds the per-request application context handed to every stage
ContextFactory = Callable[[], Any]


class HTTPServer:
    """
    Thread-per-connection HTTP/1.1 server.

    =========================================================================
    USAGE
    =========================================================================

        router = Router()

        @router.get(RegexMatcher(r"^/api/posts/(?P<id>[0-9]{1,10})/?$"))
        def get_post(ctx, request, response, params):
            return request, response.json({"id": int(params["id"])})

        pipeline = MiddlewarePipeline()
        pipeline.use(LoggingMiddleware(), router)

        server = HTTPServer(ServerConfig.from_env(), context_factory, pipeline)
        server.run()  # Blocks until SIGINT/SIGTERM

    =========================================================================
    CONCURRENCY
    =========================================================================

    Every accepted connection gets its own daemon thread. The pipeline,
    router and config are shared read-only; everything request-scoped
    (context, request, response) lives on that thread only.

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        context_factory: Optional[ContextFactory] = None,
        pipeline: Optional[MiddlewarePipeline] = None,
    ):
        """
        Initialize the HTTP server.

        Args:
            config: Server configuration. Uses defaults if not provided.
            context_factory: Called once per request to build the context
                             passed to every stage. Defaults to None context.
            pipeline: Stages to run for every request.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self.context_factory: ContextFactory = context_factory or (lambda: None)
        self.pipeline = pipeline if pipeline is not None else MiddlewarePipeline()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser()

        # In-flight connection threads, joined on shutdown
        self._threads: Set[threading.Thread] = set()
        self._threads_lock = threading.Lock()

    # =========================================================================
    # CONFIGURATION METHODS
    # =========================================================================

    def use(self, stage: Stage) -> "HTTPServer":
        """
        Append a stage to the pipeline.

        Returns:
            Self for method chaining.
        """
        self.pipeline.add(stage)
        return self

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port); the real port once listening."""
        return self._socket_server.address

    @property
    def active_connections(self) -> int:
        with self._threads_lock:
            return len(self._threads)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        logger.info(
            f"Starting HTTP server on {self.config.host}:{self.config.port} "
            f"({len(self.pipeline)} pipeline stages)"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting connections. run() returns once in-flight work drains."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is listening (used by tests)."""
        return self._socket_server.wait_until_ready(timeout)

    def _shutdown(self):
        """
        Graceful shutdown.

        1. Stop accepting new connections (already done by the caller)
        2. Wait for in-flight connections, bounded by shutdown_timeout
        3. Log anything still running; daemon threads die with the process
        """
        logger.info("Shutting down server...")

        deadline = time.monotonic() + self.config.shutdown_timeout
        with self._threads_lock:
            pending = list(self._threads)

        for thread in pending:
            thread.join(timeout=max(0.0, deadline - time.monotonic()))

        still_running = self.active_connections
        if still_running:
            logger.warning(f"{still_running} connection(s) still active after shutdown timeout")

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Start a thread for a new connection.

        Called by SocketServer on the accept thread, so it must not block.
        """
        thread = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        with self._threads_lock:
            self._threads.add(thread)
        thread.start()

    def _process_connection(self, conn: Connection):
        """Serve one request on the connection, then close it."""
        try:
            with conn:  # Context manager ensures connection is closed
                self._serve_request(conn)
        except Exception as e:
            # Last line of defense; the thread must never die silently
            logger.exception(f"[{conn.id}] Connection error: {e}")
        finally:
            with self._threads_lock:
                self._threads.discard(threading.current_thread())

    def _serve_request(self, conn: Connection):
        """
        Read, parse, run the pipeline and make sure a response goes out.

        =====================================================================
        ERROR HANDLING
        =====================================================================

            Where it fails               What the client gets
            ─────────────────────────    ────────────────────────────────
            slow head                    408
            oversized head               413
            malformed head/target        HTTPParseError status (400 ...)
            stage: HTTPParseError        its status (413/400 from the body)
            stage: TimeoutError          408
            stage: any other exception   500 JSON error
            stage: ConnectionError       nothing (client is gone)
            no stage answered            empty 200

        The error-path statuses are only sent if the response is still
        FRESH; a response already on the wire is never written twice.

        =====================================================================
        """
        start_time = time.perf_counter()

        # ─────────────────────────────────────────────────────────────────
        # READ + PARSE HEAD
        # ─────────────────────────────────────────────────────────────────
        try:
            raw_head = conn.read_head()
        except TimeoutError:
            self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout", start_time)
            return
        except ValueError as e:
            self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e), start_time)
            return

        if raw_head is None:
            return  # Client connected and left without a request

        try:
            head = self._parser.parse_head(raw_head)
            request = Request.from_head(
                head,
                body_reader=conn.read_body,
                client_address=conn.address,
                max_body_size=self.config.max_body_size,
            )
        except HTTPParseError as e:
            self._send_error(conn, e.status_code, str(e), start_time)
            return

        # ─────────────────────────────────────────────────────────────────
        # PIPELINE
        # ─────────────────────────────────────────────────────────────────
        response = Response(conn.send_response, server_name=self.config.server_name)

        try:
            ctx = self.context_factory()
            request, response = self.pipeline.run(ctx, request, response)
        except ConnectionError as e:
            logger.warning(f"[{conn.id}] Client went away: {e}")
        except HTTPParseError as e:
            self._fail(conn, response, e.status_code, str(e))
        except TimeoutError:
            self._fail(conn, response, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            self._fail(conn, response, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")

        # ─────────────────────────────────────────────────────────────────
        # FINALIZE
        # ─────────────────────────────────────────────────────────────────
        if not response.is_done:
            if response.headers_written:
                logger.warning(f"[{conn.id}] Response headers sent without a body")
            else:
                try:
                    response.text("")
                except ConnectionError as e:
                    logger.warning(f"[{conn.id}] Client went away: {e}")

        self._log_access(conn, request.method, request.target, response, start_time)

    def _fail(self, conn: Connection, response: Response, status: int, message: str):
        """Send an error response unless something was already written."""
        if response.headers_written:
            logger.debug(f"[{conn.id}] Response already started; not sending {status}")
            return

        try:
            response.json({"error": message}, status=status)
        except (ConnectionError, ResponseAlreadySentError) as e:
            logger.warning(f"[{conn.id}] Could not send error response: {e}")

    def _send_error(self, conn: Connection, status: int, message: str, start_time: float):
        """
        Send an error response for a request that never reached the pipeline.
        """
        response = Response(conn.send_response, server_name=self.config.server_name)
        self._fail(conn, response, status, message)
        self._log_access(conn, "-", "-", response, start_time)

    def _log_access(
        self,
        conn: Connection,
        method: str,
        target: str,
        response: Response,
        start_time: float,
    ):
        """
        One line per request:

            127.0.0.1 "GET /api/posts/42" 200 187 1.52ms
        """
        duration_ms = (time.perf_counter() - start_time) * 1000
        access_logger.info(
            f'{conn.client_ip} "{method} {target}" {int(response.status)} '
            f"{response.bytes_sent} {duration_ms:.2f}ms"
        )
