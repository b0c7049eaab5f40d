"""CLI: Test database connectivity and report the token cache state.

Reads configuration from resources/.env via config.load_env_file().
Performs a simple SELECT 1 using SQLAlchemy, prints the current Alembic
revision when the alembic_version table exists, and counts cached tokens
for the configured network.
"""
from __future__ import annotations

import argparse

from sqlalchemy.exc import SQLAlchemyError

from config import get_database_url, get_token_sync_config, load_env_file
from db.db_conn import DbConn
from db.tokens_repo import TokensRepo


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Test DB connection and token cache")
    parser.add_argument("--echo", action="store_true", help="Enable SQLAlchemy engine echo")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables (dev databases)")
    return parser.parse_args()


def main() -> int:
    load_env_file()

    url = get_database_url()
    if not url:
        print("DATABASE_URL not set or incomplete DB_* variables. Check resources/.env.")
        return 2

    args = parse_args()
    try:
        db = DbConn(db_url=url, echo=args.echo)
    except Exception as exc:
        print(f"Failed to configure engine: {exc}")
        return 2

    ok = db.test_connection()
    print(f"Connection test: {'OK' if ok else 'FAILED'}")
    if not ok:
        return 1

    rev = db.get_alembic_revision()
    print(f"Alembic revision: {rev or 'not found (no alembic_version table)'}")

    if args.create_tables:
        db.create_all()

    network = get_token_sync_config().network
    repo = TokensRepo()
    try:
        with db.session_scope() as session:
            count = repo.count(session, network)
            updated = repo.last_updated(session, network)
    except SQLAlchemyError as exc:
        print(f"Token table unavailable: {exc}")
        return 1

    print(f"Cached tokens for {network}: {count} (last update: {updated or 'never'})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
