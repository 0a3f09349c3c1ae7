"""
=============================================================================
BLOG API CLI ENTRY POINT
=============================================================================

    # Run with defaults (.env / environment, else 127.0.0.1:8080)
    python -m blogapi

    # Custom port
    python -m blogapi --port 3000

    # Listen on all interfaces (for containers)
    python -m blogapi --host 0.0.0.0

    # Another Redis
    python -m blogapi --redis-url redis://cache:6379/1

    # Print the route table and exit
    python -m blogapi --list-routes

Startup order:

    1. load_dotenv()               .env → os.environ (existing vars win)
    2. ServerConfig.from_env()     environment → config
    3. argparse overrides          CLI → config
    4. logging.basicConfig()       once, for the whole process
    5. redis.ConnectionPool        shared by every request context
    6. create_app(...).run()       blocks until SIGINT/SIGTERM

=============================================================================
"""

import argparse
import logging
import sys

import redis
from dotenv import load_dotenv

from . import __version__
from .blog import build_router, create_app
from .config import ServerConfig


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_arg_parser() -> argparse.ArgumentParser:
    """
    Command-line options.

    Every option defaults to None so that anything not given on the
    command line keeps its value from the environment.
    """
    parser = argparse.ArgumentParser(
        prog="blogapi",
        description="Blog post HTTP API on Redis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  WEB_SOCKET              host:port to bind (default: 127.0.0.1:8080)
  REDIS_SOCKET            Redis URL (default: redis://127.0.0.1:6379/0)
  LOG_LEVEL               Logging level (default: INFO)
  HTTP_TIMEOUT            Socket timeout in seconds (default: 30)
  REDIS_MAX_CONNECTIONS   Redis pool size (default: 16)
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (overrides WEB_SOCKET)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (overrides WEB_SOCKET)"
    )

    parser.add_argument(
        "--redis-url", "-r",
        default=None,
        help="Redis connection URL (overrides REDIS_SOCKET)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (overrides LOG_LEVEL)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Format of the incoming-request log line (default: text)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--list-routes",
        action="store_true",
        help="Print the route table and exit"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"blogapi {__version__}"
    )

    return parser


def load_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then command-line overrides."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.redis_url is not None:
        config.redis_url = args.redis_url
    if args.log_level is not None:
        config.log_level = args.log_level

    config.validate()
    return config


def main(argv=None) -> int:
    """Main CLI entry point."""
    load_dotenv()

    args = build_arg_parser().parse_args(argv)

    if args.list_routes:
        build_router().print_routes()
        return 0

    try:
        config = load_config(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Starting application")

    pool = redis.ConnectionPool.from_url(
        config.redis_url,
        decode_responses=True,
        max_connections=config.redis_max_connections,
    )

    try:
        create_app(config, pool, log_format=args.log_format).run()
    except OSError as e:
        logger.error(f"Server failed: {e}")
        return 1
    finally:
        pool.disconnect()

    return 0


if __name__ == "__main__":
    sys.exit(main())
