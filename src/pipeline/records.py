"""Typed upstream token records and the page parse step.

The explorer returns loosely typed JSON. Every item goes through
``parse_token_record`` before the aggregator or ranker sees it; items that
fail validation are logged and dropped one by one so a single malformed
record never costs the whole page.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

FUNGIBLE_TOKEN_TYPE = "ERC-20"


class TokenRecord(BaseModel):
    """One token item as listed by the explorer ``/api/v2/tokens`` endpoint.

    Price and market cap are parsed to ``Decimal`` here because ranking
    depends on them. ``decimals``, ``holders`` and ``total_supply`` stay in
    their upstream string form and are converted when persisted.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    address: str = Field(validation_alias=AliasChoices("address", "address_hash"))
    symbol: Optional[str] = None
    name: Optional[str] = None
    decimals: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    circulating_market_cap: Optional[Decimal] = None
    total_supply: Optional[str] = None
    holders: Optional[str] = Field(default=None, validation_alias=AliasChoices("holders", "holders_count"))
    icon_url: Optional[str] = None
    type: Optional[str] = None

    @field_validator("address", mode="before")
    @classmethod
    def _normalize_address(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("address must not be empty")
        return value

    @field_validator("decimals", "total_supply", "holders", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("exchange_rate", "circulating_market_cap", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip() == "":
            return None
        if isinstance(value, float):
            # shortest repr, not the binary expansion
            return str(value)
        return value

    @property
    def is_fungible(self) -> bool:
        return self.type == FUNGIBLE_TOKEN_TYPE


@dataclass(frozen=True)
class TokenPage:
    """One upstream page: parsed records plus the continuation cursor, if any."""

    items: List[TokenRecord]
    next_page_params: Optional[Dict[str, Any]] = None
    quarantined: int = 0


def parse_token_record(raw: Mapping[str, Any]) -> TokenRecord:
    """Validate one raw item. Raises ``pydantic.ValidationError`` when malformed."""
    return TokenRecord.model_validate(raw)


def parse_page(payload: Mapping[str, Any]) -> TokenPage:
    """Parse a decoded ``{items, next_page_params}`` body into a ``TokenPage``.

    The caller guarantees ``payload["items"]`` is a list.
    """
    items: Sequence[Any] = payload["items"]
    records: List[TokenRecord] = []
    quarantined = 0
    for idx, raw in enumerate(items):
        if not isinstance(raw, Mapping):
            quarantined += 1
            logger.warning("Quarantined non-object token record", extra={"ctx": {"index": idx}})
            continue
        try:
            records.append(parse_token_record(raw))
        except ValidationError as exc:
            ident = raw.get("address") or raw.get("address_hash") or f"#{idx}"
            quarantined += 1
            logger.warning(
                "Quarantined malformed token record",
                extra={"ctx": {"index": idx, "address": ident, "errors": exc.errors(include_url=False)}},
            )

    cursor = payload.get("next_page_params")
    next_page_params = dict(cursor) if isinstance(cursor, Mapping) and cursor else None
    return TokenPage(
        items=records,
        next_page_params=next_page_params,
        quarantined=quarantined,
    )
