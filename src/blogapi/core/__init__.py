"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Creates the TCP listening socket and binds host:port             │
    │  • Runs the accept() loop with a polling timeout                    │
    │  • Handles graceful shutdown via signals (SIGTERM, SIGINT)          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ One Connection per accepted socket
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • read_head(): buffers recv() chunks up to the blank line          │
    │  • read_body(n): Content-Length bytes, on demand only               │
    │  • send_response(): sendall(), False if the client is gone          │
    │  • close(): FIN, drain, release the descriptor                      │
    └─────────────────────────────────────────────────────────────────────┘

Threads are started per connection by blogapi.server.HTTPServer.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState

__all__ = [
    "SocketServer",     # TCP listener - accepts connections
    "Connection",       # Wrapper for client socket - handles I/O
    "ConnectionState",  # Enum for connection lifecycle states
]
