from __future__ import annotations

from typing import Dict, Iterable, List

from pipeline.records import TokenRecord

DEFAULT_TOP_N = 100


def is_rankable(record: TokenRecord) -> bool:
    """Fungible, priced and capped. Anything else is excluded, not an error."""
    return (
        record.is_fungible
        and record.exchange_rate is not None
        and record.circulating_market_cap is not None
    )


def merge_by_address(records: Iterable[TokenRecord]) -> List[TokenRecord]:
    """Collapse duplicates by address.

    The last occurrence of an address wins; it keeps the position of the
    first occurrence so upstream order is otherwise preserved.
    """
    merged: Dict[str, TokenRecord] = {}
    for record in records:
        merged[record.address] = record
    return list(merged.values())


def filter_and_rank(records: Iterable[TokenRecord], top_n: int = DEFAULT_TOP_N) -> List[TokenRecord]:
    """Return at most ``top_n`` rankable records ordered by market cap, descending.

    ``sorted`` is stable, so equal caps keep their upstream order.
    """
    if top_n < 0:
        raise ValueError("top_n must be >= 0")

    candidates = merge_by_address(r for r in records if is_rankable(r))
    ranked = sorted(candidates, key=lambda r: r.circulating_market_cap, reverse=True)
    return ranked[:top_n]
