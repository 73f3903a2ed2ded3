"""
Command-line interface for the account hub.

Provides CLI commands for server management:
- init-db: Initialize the database schema and seed the skill catalog
- run: Start the API server
- recompute-ranks: Recompute aggregates and ranks for persistence groups
- cleanup-tokens: Delete expired or redeemed login tokens

Usage:
    account-hub init-db
    account-hub run [--host HOST] [--port PORT]
    account-hub recompute-ranks [--persistence-id ID]
    account-hub cleanup-tokens

Environment Variables:
    HUB_HOST: Host to bind the API server (default: 0.0.0.0)
    HUB_PORT: Port for the API server (default: 3002)
    HUB_DB_PATH: SQLite database path
"""

import argparse
import sys

from account_hub.db.errors import DatabaseError


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Initialize the database schema.

    Returns:
        0 on success, 1 on error
    """
    from account_hub.db.schema import init_database

    try:
        init_database()
        print("Database initialized successfully.")
        return 0
    except Exception as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the API server in the foreground.

    The database is initialized first when the file does not exist yet.

    Returns:
        0 on clean shutdown, 1 on startup error
    """
    from account_hub.api.server import start_server
    from account_hub.db.connection import get_db_path
    from account_hub.db.schema import init_database

    if not get_db_path().exists():
        print("Database not found. Initializing...")
        init_database()

    try:
        start_server(host=getattr(args, "host", None), port=getattr(args, "port", None))
        return 0
    except KeyboardInterrupt:
        return 0
    except OSError as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1


def cmd_recompute_ranks(args: argparse.Namespace) -> int:
    """
    Recompute every aggregate and rank for one or all persistence groups.

    Returns:
        0 on success, 1 on error
    """
    from account_hub.db import worlds_repo
    from account_hub.services.ranking import RankingEngine, SkillCatalogError

    engine = RankingEngine()
    try:
        persistence_id = getattr(args, "persistence_id", None)
        groups = [persistence_id] if persistence_id else worlds_repo.list_persistence_ids()
        if not groups:
            print("No persistence groups registered.")
            return 0
        for group in groups:
            summary = engine.recompute_full_group(group)
            print(
                f"Persistence group {group}: {summary.aggregates_recomputed} aggregates, "
                f"{summary.skills_ranked} skills ranked."
            )
        return 0
    except (DatabaseError, SkillCatalogError) as e:
        print(f"Error recomputing ranks: {e}", file=sys.stderr)
        return 1


def cmd_cleanup_tokens(args: argparse.Namespace) -> int:
    """
    Delete expired or redeemed login tokens in batches until none remain.

    Returns:
        0 on success, 1 on error
    """
    from account_hub.services.tasks import cleanup_login_tokens

    total = 0
    try:
        while True:
            deleted = cleanup_login_tokens()
            total += deleted
            if deleted == 0:
                break
    except DatabaseError as e:
        print(f"Error cleaning up tokens: {e}", file=sys.stderr)
        return 1
    print(f"Deleted {total} login tokens.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="account-hub",
        description="Account, presence and hiscores backend for game worlds",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init-db", help="Initialize the database schema")
    init_parser.set_defaults(func=cmd_init_db)

    run_parser = subparsers.add_parser("run", help="Start the API server")
    run_parser.add_argument("--host", type=str, default=None, help="Host to bind")
    run_parser.add_argument("--port", type=int, default=None, help="Port to listen on")
    run_parser.set_defaults(func=cmd_run)

    recompute_parser = subparsers.add_parser(
        "recompute-ranks", help="Recompute aggregates and ranks"
    )
    recompute_parser.add_argument(
        "--persistence-id",
        type=int,
        default=None,
        help="Only recompute this persistence group",
    )
    recompute_parser.set_defaults(func=cmd_recompute_ranks)

    cleanup_parser = subparsers.add_parser(
        "cleanup-tokens", help="Delete expired or redeemed login tokens"
    )
    cleanup_parser.set_defaults(func=cmd_cleanup_tokens)

    return parser


def main() -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
