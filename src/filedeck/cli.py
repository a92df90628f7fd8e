"""Command-line interface for filedeck.

Provides the main entry point for serving the WebSocket endpoints, and
a local search command that walks a scope the same way the search
stream does.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filedeck.config.settings import Settings

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="filedeck",
        description="Command and search streams for a web file manager",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/filedeck.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the WebSocket server")
    serve_parser.add_argument("--host", type=str, default=None, help="Override server.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")

    search_parser = subparsers.add_parser(
        "search", help="Search the configured user's filesystem and print matches",
    )
    search_parser.add_argument("query", type=str, help="Search query, e.g. 'case:insensitive readme'")
    search_parser.add_argument(
        "--path", type=str, default="/",
        help="Directory to search, relative to the user's filesystem root",
    )

    return parser.parse_args(argv)


def _search(settings: Settings, args: argparse.Namespace) -> int:
    """Print every match for a query, one path per line."""
    from filedeck.search.engine import walk_matches
    from filedeck.search.query import SearchQueryError, parse_search
    from filedeck.utils.paths import search_scope

    try:
        options = parse_search(args.query)
    except SearchQueryError as e:
        print(f"Invalid query: {e}", file=sys.stderr)
        return 2

    user = settings.user
    scope = search_scope(user.filesystem, args.path)
    count = 0
    try:
        for path in walk_matches(scope, options, user.allowed):
            print(path)
            count += 1
    except OSError as e:
        print(f"Search failed: {e}", file=sys.stderr)
        return 1

    logger.info("%d match(es) under %s", count, scope)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the filedeck CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from filedeck.config.settings import load_settings
    from filedeck.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        import uvicorn
        from filedeck.endpoint.server import create_app

        host = args.host or settings.server.host
        port = args.port or settings.server.port
        logger.info("Serving %s on %s:%d", settings.user.filesystem, host, port)
        uvicorn.run(create_app(settings), host=host, port=port, log_config=None)

    elif args.command == "search":
        sys.exit(_search(settings, args))


if __name__ == "__main__":
    main()
