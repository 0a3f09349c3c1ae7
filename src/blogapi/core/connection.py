"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the two reads and one write an HTTP
exchange needs on this server.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries. A request sent in one write can
arrive in several recv() chunks, and one recv() chunk can hold the end of
the headers AND the start of the body:

    First recv():  "POST /api/posts HTTP/1.1\\r\\nContent-Le"
    Second recv(): "ngth: 17\\r\\n\\r\\n{\\"title\\": \\"Hel"
    Third recv():  "lo\\"}"

So reading is split in two, with a buffer carried between them:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      TWO-PHASE READ                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   read_head()                                                        │
    │     recv() until \\r\\n\\r\\n is in the buffer                          │
    │     return everything up to and including \\r\\n\\r\\n                  │
    │     keep the rest in _buffer  ──────────────┐                        │
    │                                             │                        │
    │   ... headers parsed, pipeline runs ...     │                        │
    │                                             ▼                        │
    │   read_body(n)    (only if a stage asks for the body)                │
    │     take from _buffer first, then recv() until n bytes               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The body is never read unless a handler calls Request.into_body(); a GET
that carries a body simply has it discarded when the socket closes.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSING ──► CLOSED
     │         │                                      ▲
     └─────────┴──────────────────────────────────────┘
                (timeout, oversized head, disconnect)

One request per connection: there is no keep-alive state.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)

HEAD_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"                # Just accepted, nothing read yet
    READING = "reading"        # Reading the request head or body
    PROCESSING = "processing"  # Head parsed, pipeline is running
    WRITING = "writing"        # Sending response bytes
    CLOSING = "closing"        # Shutdown sequence in progress
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Unique connection identifier (for logging).
        state: Current connection state.
        created_at: Timestamp when connection was accepted.
        last_activity: Timestamp of last activity.
        bytes_received: Total bytes read from the socket.
        bytes_sent: Total bytes written to the socket.
    """

    # Required parameters
    socket: socket.socket
    address: tuple[str, int]

    # Generated/default parameters
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    bytes_received: int = 0
    bytes_sent: int = 0

    # Configuration (passed from ServerConfig)
    buffer_size: int = 8192
    timeout: float = 30.0
    max_head_size: int = 64 * 1024

    # Bytes received past the end of the head
    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_head(self) -> Optional[bytes]:
        """
        Read the request line and headers.

        Returns:
            Head bytes including the terminating blank line, or None if the
            client closed the connection before sending a full head.

        Raises:
            TimeoutError: If the client is too slow.
            ValueError: If the head grows past max_head_size.
        """
        self.state = ConnectionState.READING

        while HEAD_TERMINATOR not in self._buffer:
            chunk = self._recv()
            if not chunk:
                return None  # Connection closed by client

            self._buffer += chunk

            # Safety check: don't let buffer grow forever
            if len(self._buffer) > self.max_head_size:
                raise ValueError(f"Request head too large: {len(self._buffer)} bytes")

        head_end = self._buffer.find(HEAD_TERMINATOR) + len(HEAD_TERMINATOR)
        head = self._buffer[:head_end]
        self._buffer = self._buffer[head_end:]

        self.state = ConnectionState.PROCESSING
        return head

    def read_body(self, length: int) -> bytes:
        """
        Read exactly length body bytes, or fewer if the client hangs up.

        Bytes that arrived together with the head are used first.

        Raises:
            TimeoutError: If the client stops sending mid-body.
        """
        previous_state = self.state
        self.state = ConnectionState.READING

        try:
            while len(self._buffer) < length:
                chunk = self._recv()
                if not chunk:
                    break  # Connection closed mid-body
                self._buffer += chunk
        finally:
            self.state = previous_state

        body = self._buffer[:length]
        self._buffer = self._buffer[length:]
        return body

    def _recv(self) -> bytes:
        """
        Receive data from socket.

        Returns:
            Received bytes, or empty bytes if connection closed.
        """
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            # Client disconnected abruptly
            return b""

        self.bytes_received += len(data)
        self.last_activity = time.time()
        return data

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response data to the client.

        Uses sendall() so a partial write never leaves half a response
        on the wire without an error.

        Returns:
            True if send succeeded, False if connection lost.
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
        except OSError as e:
            # Covers ConnectionResetError, BrokenPipeError and timeouts
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.bytes_sent += len(data)
        self.last_activity = time.time()
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        shutdown(SHUT_WR) sends FIN so the client sees end-of-response,
        then any unread request bytes are drained before the descriptor
        is released.
        """
        if self.state == ConnectionState.CLOSED:
            return  # Already closed

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass  # Discard unread body bytes
        except OSError:
            pass  # Timed out or reset; closing either way

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.age:.3f}s "
            f"({self.bytes_received} bytes in, {self.bytes_sent} bytes out)"
        )

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Allows using Connection with 'with' statement for automatic cleanup:

            with conn:
                head = conn.read_head()
                conn.send_response(data)
            # Connection automatically closed here
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
