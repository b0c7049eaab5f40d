from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import Float, cast, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from db.poco.token import Token

DEFAULT_READ_LIMIT = 100

# Columns refreshed when an address is seen again.
MUTABLE_COLUMNS: Sequence[str] = (
    "symbol",
    "name",
    "decimals",
    "price_usd",
    "circulating_market_cap",
    "total_supply",
    "holders",
    "icon_url",
    "type",
)


@dataclass(frozen=True)
class TokenRow:
    address: str
    network: str
    symbol: Optional[str]
    name: Optional[str]
    decimals: Optional[int]
    price_usd: Optional[Decimal]
    circulating_market_cap: Optional[Decimal]
    total_supply: Optional[Decimal]
    holders: Optional[int]
    icon_url: Optional[str]
    type: str


def _insert_for(session: Session) -> Any:
    """Pick the dialect-specific INSERT that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")


def _cap_order_key(session: Session) -> Any:
    # SQLite holds the cap as text, so compare it as a number
    if session.get_bind().dialect.name == "sqlite":
        return cast(Token.circulating_market_cap, Float)
    return Token.circulating_market_cap


class TokensRepo:
    """Repository for upserting and reading explorer token rows."""

    def upsert_many(self, session: Session, rows: Iterable[TokenRow]) -> int:
        payload: List[Mapping[str, object]] = [
            {
                "address": r.address,
                "network": r.network,
                "symbol": r.symbol,
                "name": r.name,
                "decimals": r.decimals,
                "price_usd": r.price_usd,
                "circulating_market_cap": r.circulating_market_cap,
                "total_supply": r.total_supply,
                "holders": r.holders,
                "icon_url": r.icon_url,
                "type": r.type,
            }
            for r in rows
        ]
        if not payload:
            return 0

        insert = _insert_for(session)
        stmt = insert(Token.__table__).values(payload)
        set_ = {col: getattr(stmt.excluded, col) for col in MUTABLE_COLUMNS}
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=[Token.address, Token.network],
            set_=set_,
        )
        result = session.execute(stmt)
        # SQLAlchemy may return -1 for rowcount in some drivers; fall back to len(payload)
        return result.rowcount if result.rowcount and result.rowcount > 0 else len(payload)

    def delete_absent(self, session: Session, network: str, keep: Iterable[str]) -> int:
        """Delete rows of ``network`` whose address is not in ``keep``."""
        keep_list = list(keep)
        stmt = delete(Token).where(Token.network == network)
        if keep_list:
            stmt = stmt.where(Token.address.not_in(keep_list))
        result = session.execute(stmt)
        return result.rowcount or 0

    def list_top(self, session: Session, network: str, limit: int = DEFAULT_READ_LIMIT) -> List[Token]:
        stmt = (
            select(Token)
            .where(Token.network == network)
            .order_by(_cap_order_key(session).desc().nulls_last(), Token.address)
            .limit(limit)
        )
        return list(session.scalars(stmt).all())

    def count(self, session: Session, network: str) -> int:
        stmt = select(func.count()).select_from(Token).where(Token.network == network)
        return int(session.execute(stmt).scalar_one())

    def last_updated(self, session: Session, network: str):
        stmt = select(func.max(Token.updated_at)).where(Token.network == network)
        return session.execute(stmt).scalar_one_or_none()
