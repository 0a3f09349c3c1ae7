"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Listens on the configured address and hands every accepted client socket,
wrapped in a Connection, to a callback.

=============================================================================
SOCKET LIFECYCLE (SERVER SIDE)
=============================================================================

    1. socket()    Create the listening socket
    2. bind()      Associate it with host:port
    3. listen()    OS starts queueing incoming connections (backlog)
    4. accept()    Returns a NEW socket per client; the listener keeps going
    5. close()     Release the listener on shutdown

        listener (WEB_SOCKET, port 0 → OS picks)
            │ accept()
            ▼
        Connection(socket, address, timeout, max_head_size)
            │ connection_handler(conn)   must not block
            ▼
        HTTPServer starts "conn-<id>" thread → one request → close

=============================================================================
INTERRUPTIBLE ACCEPT
=============================================================================

accept() would block forever, so the listener has a 1 second timeout and
the loop re-checks the running flag each time it fires:

    while running:
        try:
            accept()        # Blocks for 1 second max
        except timeout:
            continue        # Check running flag, loop again

SIGINT (Ctrl+C) and SIGTERM (docker stop) flip the flag. Signal handlers
can only be installed from the main thread; when the server runs on any
other thread (as in tests) shutdown() has to be called explicitly.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig):
        """
        Initialize the socket server.

        The socket is created lazily in start().
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False

        # Set once the socket is listening, cleared again on shutdown
        self._ready_event = threading.Event()

        # Original signal handlers, restored on cleanup
        self._original_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        With port 0 in the config this is the port the OS picked, once
        the server is listening.
        """
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return host, port
        return self.config.host, self.config.port

    def _create_socket(self) -> socket.socket:
        """Create and configure the listening socket."""
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # SO_REUSEADDR: restart without "Address already in use" from TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # TCP_NODELAY: send small responses immediately
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # Polling timeout for the accept loop
        sock.settimeout(1.0)

        return sock

    def _setup_signals(self):
        """
        Install SIGTERM/SIGINT handlers that trigger shutdown().

        Skipped outside the main thread, where signal.signal() raises.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop.

        This method BLOCKS until shutdown() is called.

        Args:
            connection_handler: Called with each accepted Connection. It must
                                return quickly; the HTTP server starts a
                                thread per connection.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        self._running = True
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """Accept connections until the running flag is cleared."""
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # Polling timeout; re-check the running flag
            except OSError as e:
                # Socket error - usually means we're shutting down
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_head_size=self.config.max_head_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """
        Stop accepting connections.

        Safe to call from a signal handler or another thread, and more
        than once.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        """Close the listener and restore signal handlers."""
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None

        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the server is listening.

        Returns:
            True if listening, False on timeout.
        """
        return self._ready_event.wait(timeout)
