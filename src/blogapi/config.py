"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the blog API process.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m blogapi --port 3000                              │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── WEB_SOCKET=0.0.0.0:3000 python -m blogapi                  │
    │                                                                      │
    │   3. .env file in the working directory (python-dotenv)             │
    │      └── never overrides a variable that is already set             │
    │                                                                      │
    │   4. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Configuration is read once at startup and is immutable afterwards. It is
passed explicitly to whatever needs it; nothing reads os.environ later.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple


DEFAULT_WEB_SOCKET = "127.0.0.1:8080"
DEFAULT_REDIS_URL = "redis://127.0.0.1:6379/0"


@dataclass
class ServerConfig:
    """
    Configuration for the blog API server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - max_head_size, max_body_size, server_name

    STORAGE
    - redis_url, redis_max_connections

    SHUTDOWN / LOGGING
    - shutdown_timeout, log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers)
    """

    port: int = 8080
    """The port number to listen on. 0 lets the OS pick a free port."""

    backlog: int = 128
    """Maximum number of queued connections."""

    buffer_size: int = 8192
    """Size of each recv() call in bytes."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds for reading a request and writing a response.
    None = blocking (infinite wait, dangerous in production!)
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    max_head_size: int = 64 * 1024
    """Maximum size of the request line plus headers (413 beyond this)."""

    max_body_size: int = 10 * 1024 * 1024  # 10 MB
    """Maximum Content-Length a handler may read (413 beyond this)."""

    server_name: str = "BlogAPI/1.0"
    """Value of the Server response header."""

    # ─────────────────────────────────────────────────────────────────────
    # STORAGE
    # ─────────────────────────────────────────────────────────────────────

    redis_url: str = DEFAULT_REDIS_URL
    """Redis connection URL for the shared connection pool."""

    redis_max_connections: int = 16
    """Upper bound on pooled Redis connections."""

    # ─────────────────────────────────────────────────────────────────────
    # SHUTDOWN / LOGGING
    # ─────────────────────────────────────────────────────────────────────

    shutdown_timeout: float = 5.0
    """How long shutdown waits for in-flight connections, in seconds."""

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        WEB_SOCKET              host:port to bind (default: 127.0.0.1:8080)
        REDIS_SOCKET            Redis URL (default: redis://127.0.0.1:6379/0)
        LOG_LEVEL               Logging level (default: INFO)
        HTTP_TIMEOUT            Socket timeout in seconds (default: 30)
        REDIS_MAX_CONNECTIONS   Redis pool size (default: 16)

        =====================================================================

        Args:
            environ: Mapping to read from (default: os.environ)

        Raises:
            ValueError: If a variable is present but malformed
        """
        env = os.environ if environ is None else environ

        host, port = parse_socket_address(env.get("WEB_SOCKET", DEFAULT_WEB_SOCKET))

        return cls(
            host=host,
            port=port,
            timeout=float(env.get("HTTP_TIMEOUT", "30")),
            redis_url=env.get("REDIS_SOCKET", DEFAULT_REDIS_URL),
            redis_max_connections=int(env.get("REDIS_MAX_CONNECTIONS", "16")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Fail fast: a bad value stops the process at startup instead of
        surfacing on the first request.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_head_size < 1024:
            raise ValueError("max_head_size must be >= 1024")

        if self.max_body_size < 0:
            raise ValueError("max_body_size must be >= 0")

        if self.redis_max_connections < 1:
            raise ValueError("redis_max_connections must be >= 1")

        if not self.redis_url.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError(f"Unsupported Redis URL: {self.redis_url!r}")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level!r}")


def parse_socket_address(value: str) -> Tuple[str, int]:
    """
    Split "host:port" into its parts.

        "127.0.0.1:8080"  → ("127.0.0.1", 8080)
        "[::1]:8080"      → ("::1", 8080)

    Raises:
        ValueError: If there is no port or it is not a number
    """
    host, sep, port = value.strip().rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Expected host:port, got {value!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    return host, int(port)
