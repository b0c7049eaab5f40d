"""Normalize ranked records into store rows and write them in one transaction."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from db.db_conn import DbConn
from db.tokens_repo import TokenRow, TokensRepo
from pipeline.errors import ConversionError, PersistenceError
from pipeline.ranking import merge_by_address
from pipeline.records import FUNGIBLE_TOKEN_TYPE, TokenRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistResult:
    written: int
    rejected: Tuple[str, ...] = field(default_factory=tuple)
    pruned: int = 0


def _to_non_negative_int(address: str, field_name: str, value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    try:
        number = Decimal(value.strip())
    except InvalidOperation as exc:
        raise ConversionError(address, field_name, value, "not a number") from exc
    if not number.is_finite() or number != number.to_integral_value():
        raise ConversionError(address, field_name, value, "not an integer")
    if number < 0:
        raise ConversionError(address, field_name, value, "negative")
    return int(number)


def _to_supply(address: str, value: Optional[str]) -> Optional[Decimal]:
    if value is None or value.strip() == "":
        return None
    try:
        number = Decimal(value.strip())
    except InvalidOperation as exc:
        raise ConversionError(address, "total_supply", value, "not a number") from exc
    if not number.is_finite() or number < 0:
        raise ConversionError(address, "total_supply", value, "not a finite non-negative number")
    return number.to_integral_value()


def to_token_row(record: TokenRecord, network: str) -> TokenRow:
    """Convert an upstream record to its store row. Raises ``ConversionError``."""
    return TokenRow(
        address=record.address,
        network=network,
        symbol=record.symbol,
        name=record.name,
        decimals=_to_non_negative_int(record.address, "decimals", record.decimals),
        price_usd=record.exchange_rate,
        circulating_market_cap=record.circulating_market_cap,
        total_supply=_to_supply(record.address, record.total_supply),
        holders=_to_non_negative_int(record.address, "holders", record.holders),
        icon_url=record.icon_url,
        type=record.type or FUNGIBLE_TOKEN_TYPE,
    )


def build_rows(records: Iterable[TokenRecord], network: str) -> Tuple[List[TokenRow], List[ConversionError]]:
    """Convert every record; failures are collected instead of aborting the batch."""
    rows: List[TokenRow] = []
    failures: List[ConversionError] = []
    for record in merge_by_address(records):
        try:
            rows.append(to_token_row(record, network))
        except ConversionError as exc:
            failures.append(exc)
    return rows, failures


def persist_tokens(
    db: DbConn,
    records: Iterable[TokenRecord],
    network: str,
    repo: Optional[TokensRepo] = None,
    prune_stale: bool = False,
) -> PersistResult:
    """Upsert ``records`` for ``network`` as a single all-or-nothing transaction.

    Records that fail numeric conversion are logged with their address and
    left out; the rest of the batch is written. With ``prune_stale`` rows of
    the network missing from the batch are deleted in the same transaction.

    Raises:
        PersistenceError: When the store rejects the batch. Nothing is written.
    """
    repo = repo or TokensRepo()
    rows, failures = build_rows(records, network)
    for exc in failures:
        logger.error(
            "Rejected token during conversion",
            extra={"ctx": {"address": exc.address, "field": exc.field, "value": exc.value, "error": str(exc)}},
        )

    pruned = 0
    try:
        with db.session_scope() as session:
            written = repo.upsert_many(session, rows)
            if prune_stale and rows:
                pruned = repo.delete_absent(session, network, [r.address for r in rows])
    except SQLAlchemyError as exc:
        logger.error(
            "Token batch write failed",
            extra={"ctx": {"network": network, "rows": len(rows), "error": str(exc)}},
        )
        raise PersistenceError(f"Failed to persist {len(rows)} tokens: {exc}") from exc

    return PersistResult(written=written, rejected=tuple(e.address for e in failures), pruned=pruned)
