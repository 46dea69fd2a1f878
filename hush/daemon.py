#!/usr/bin/env python3
"""
Hush daemon entry point.

    hushd                  # serve the API (HUSH_DB_PATH, HUSH_HOST, PORT)
    hushd --issue-admin    # print the bootstrap admin token once, then exit
    hushd --issue NAME     # print a new named token once, then exit
"""

import argparse
import sys

import uvicorn
from loguru import logger

from .auth import TokenAuthority
from .config import ServerSettings
from .database import SecretsDatabase
from .errors import HushError
from .server import HushServer


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Hush secrets daemon")
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="SQLite database path (uses HUSH_DB_PATH env var if not set)",
    )
    parser.add_argument("--host", type=str, default=None, help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Listen port")
    parser.add_argument(
        "--issue-admin",
        action="store_true",
        help="Issue the admin token, print it once and exit",
    )
    parser.add_argument(
        "--issue",
        metavar="NAME",
        default=None,
        help="Issue a named token, print it once and exit",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    try:
        settings = ServerSettings.from_env()
    except HushError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    configure_logging("DEBUG" if args.debug else settings.log_level)

    db_path = args.db or settings.db_path
    try:
        store = SecretsDatabase(db_path)
        authority = TokenAuthority(store)

        if args.issue_admin or args.issue:
            if args.issue_admin:
                token = authority.issue_admin_token()
            else:
                token = authority.issue_token(args.issue)
            # Shown once; only its digest is stored.
            print(token)
            return 0
    except HushError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    app = HushServer(store, authority).create_app()
    host = args.host or settings.host
    port = args.port or settings.port
    logger.info(f"Hush daemon listening on {host}:{port} (db: {db_path})")
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
