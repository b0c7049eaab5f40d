"""CLI: Run one explorer token refresh cycle and persist the top tokens.

Example:
    python src/main_refresh_tokens.py --pages 3 --top 100
"""
from __future__ import annotations

import argparse
import json
from dataclasses import replace

from api.explorer_client import ExplorerClient
from config import get_log_dir, get_log_level, get_token_sync_config, load_env_file
from db.db_conn import DbConn
from log_setup import setup_logging
from pipeline.errors import TokenSyncError
from pipeline.refresh import TokenRefreshService


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Fetch top tokens from the explorer and store them in the DB")
    p.add_argument("--pages", type=int, default=None, help="Max explorer pages to walk (default TOKENS_MAX_PAGES)")
    p.add_argument("--top", type=int, default=None, help="How many ranked tokens to keep (default TOKENS_TOP_N)")
    p.add_argument("--prune", action="store_true", help="Delete stored tokens that fell out of the top window")
    p.add_argument("--create-tables", action="store_true", help="Create missing tables before refreshing")
    p.add_argument("--echo", action="store_true", help="Enable SQLAlchemy engine echo")
    return p.parse_args()


def main() -> int:
    load_env_file()
    args = parse_args()
    setup_logging(get_log_level(), get_log_dir())

    cfg = get_token_sync_config()
    if args.pages is not None:
        cfg = replace(cfg, max_pages=args.pages)
    if args.top is not None:
        cfg = replace(cfg, top_n=args.top)
    if args.prune:
        cfg = replace(cfg, prune_stale=True)

    try:
        db = DbConn(echo=args.echo)
    except ValueError as exc:
        print(f"Failed to configure engine: {exc}")
        return 2
    if args.create_tables:
        db.create_all()

    client = ExplorerClient(base_url=cfg.explorer_base_url, timeout=cfg.request_timeout)
    service = TokenRefreshService(db, client, cfg)
    try:
        result = service.run_pipeline()
    except TokenSyncError as exc:
        print(f"Token refresh failed: {exc}")
        return 1
    finally:
        service.shutdown()
        client.close()

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
