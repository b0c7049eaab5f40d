"""Standalone token refresh worker: runs the scheduler without the web API.

Run from project root:
    python worker_main.py
"""
from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from api.explorer_client import ExplorerClient  # noqa: E402
from config import get_log_dir, get_log_level, get_token_sync_config, load_env_file  # noqa: E402
from db.db_conn import DbConn  # noqa: E402
from log_setup import setup_logging  # noqa: E402
from pipeline.refresh import TokenRefreshService  # noqa: E402
from pipeline.scheduler import RefreshScheduler  # noqa: E402


def main() -> int:
    load_env_file()
    setup_logging(get_log_level(), get_log_dir())
    logger = logging.getLogger("worker")

    cfg = get_token_sync_config()
    db = DbConn()
    client = ExplorerClient(base_url=cfg.explorer_base_url, timeout=cfg.request_timeout)
    service = TokenRefreshService(db, client, cfg)
    scheduler = RefreshScheduler.from_config(service, cfg)

    scheduler.start()
    try:
        while scheduler.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Worker stopping, waiting for in-flight refresh...")
    finally:
        scheduler.stop()
        client.close()
        db.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
