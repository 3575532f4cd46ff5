"""Operator commands for agroSage.

Typical usage::

    python -m src.cli token user-42                 # print a signed token
    python -m src.cli token user-42 --issued-at 0   # fixed issue time
    python -m src.cli verify <token>
    python -m src.cli init-db
    python -m src.cli stats
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from src.api.auth import issue_token, resolve_auth_secret, verify_token
from src.config.settings import Settings
from src.providers.knowledge.sqlite_knowledge_store import SQLiteKnowledgeStore
from src.utils.errors import AgroSageError
from src.utils.logging import configure_logging


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _handle_token(args: argparse.Namespace, settings: Settings) -> int:
    token = issue_token(args.user_id, resolve_auth_secret(settings), now=args.issued_at)
    print(token)
    return 0


def _handle_verify(args: argparse.Namespace, settings: Settings) -> int:
    user_id = verify_token(args.token, resolve_auth_secret(settings), settings.auth_token_ttl_hours)
    print(f"Valid token for user: {user_id}")
    return 0


async def _handle_init_db(_args: argparse.Namespace, settings: Settings) -> int:
    store = SQLiteKnowledgeStore(db_path=settings.knowledge_db_path)
    await store.initialize()
    print(f"Knowledge database ready at {settings.knowledge_db_path}")
    return 0


async def _handle_stats(_args: argparse.Namespace, settings: Settings) -> int:
    store = SQLiteKnowledgeStore(db_path=settings.knowledge_db_path)
    await store.initialize()
    stats = await store.get_stats()

    print("Knowledge Base Statistics")
    print("=" * 40)
    for name, count in stats.items():
        print(f"  {name:<28} {count}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the operator CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="agroSage operator tools.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    token_parser = subparsers.add_parser("token", help="Mint a signed user token")
    token_parser.add_argument("user_id", help="Account id the token stands for")
    token_parser.add_argument(
        "--issued-at",
        dest="issued_at",
        type=float,
        default=None,
        help="Issue time in epoch seconds (default: now)",
    )

    verify_parser = subparsers.add_parser("verify", help="Check a user token")
    verify_parser.add_argument("token", help="Token to verify")

    subparsers.add_parser("init-db", help="Create the knowledge database tables")
    subparsers.add_parser("stats", help="Show knowledge base statistics")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse the command line and dispatch; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    settings = Settings()
    configure_logging(log_level="WARNING")

    try:
        if args.command == "token":
            return _handle_token(args, settings)
        if args.command == "verify":
            return _handle_verify(args, settings)
        if args.command == "init-db":
            return asyncio.run(_handle_init_db(args, settings))
        return asyncio.run(_handle_stats(args, settings))
    except AgroSageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
