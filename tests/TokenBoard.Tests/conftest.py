"""Shared fixtures: src/ on sys.path, in-memory store, fake explorer pages."""
from pathlib import Path
import sys
import threading
from typing import Any, Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config import TokenSyncConfig  # noqa: E402
from db.db_conn import DbConn  # noqa: E402
from pipeline.records import TokenPage, parse_page  # noqa: E402


def raw_token(
    address: str,
    cap: Optional[str] = "1000",
    price: Optional[str] = "1",
    type_: str = "ERC-20",
    **overrides: Any,
) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "address": address,
        "symbol": address[-3:].upper(),
        "name": f"Token {address[-3:]}",
        "decimals": "18",
        "exchange_rate": price,
        "circulating_market_cap": cap,
        "total_supply": "1000000",
        "holders": "42",
        "icon_url": None,
        "type": type_,
    }
    item.update(overrides)
    return item


class FakeFetcher:
    """Serves canned pages in order and records every cursor it was given."""

    def __init__(self, pages: List[Dict[str, Any]], error: Optional[Exception] = None) -> None:
        self.pages = pages
        self.error = error
        self.cursors: List[Optional[Dict[str, Any]]] = []
        self.release = threading.Event()
        self.release.set()
        self.entered = threading.Event()

    @property
    def calls(self) -> int:
        return len(self.cursors)

    def get_tokens_page(self, cursor: Optional[Dict[str, Any]] = None) -> TokenPage:
        self.cursors.append(dict(cursor) if cursor is not None else None)
        self.entered.set()
        self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        idx = min(len(self.cursors) - 1, len(self.pages) - 1)
        return parse_page(self.pages[idx])


@pytest.fixture
def db(tmp_path) -> DbConn:
    conn = DbConn(f"sqlite:///{tmp_path / 'tokens.db'}")
    conn.create_all()
    yield conn
    conn.dispose()


@pytest.fixture
def sync_config() -> TokenSyncConfig:
    return TokenSyncConfig(
        explorer_base_url="https://explorer.test",
        network="mantle",
        cache_miss_timeout=5.0,
        refresh_enabled=False,
        refresh_on_startup=False,
    )


@pytest.fixture
def single_page() -> List[Dict[str, Any]]:
    return [
        {
            "items": [
                raw_token("0xaaa", cap="5000", price="2"),
                raw_token("0xbbb", cap="9000", price="1.5"),
                raw_token("0xccc", cap=None),
                raw_token("0xddd", type_="ERC-721"),
            ],
            "next_page_params": None,
        }
    ]
