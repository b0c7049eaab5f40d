from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

from pipeline.records import TokenPage, TokenRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 3


class PageFetcher(Protocol):
    """Anything that can return one token page for an optional cursor."""

    def get_tokens_page(self, cursor: Optional[Dict[str, Any]] = None) -> TokenPage:
        ...


def aggregate_tokens(fetcher: PageFetcher, max_pages: int = DEFAULT_MAX_PAGES) -> List[TokenRecord]:
    """Walk the paginated listing and return every record in upstream order.

    Stops when a page carries no ``next_page_params`` or after ``max_pages``
    fetches. A fetch error aborts the walk and propagates unchanged.
    """
    if max_pages < 1:
        raise ValueError("max_pages must be >= 1")

    records: List[TokenRecord] = []
    cursor: Optional[Dict[str, Any]] = None
    quarantined = 0
    pages = 0
    for _ in range(max_pages):
        page = fetcher.get_tokens_page(cursor)
        pages += 1
        records.extend(page.items)
        quarantined += page.quarantined
        if not page.next_page_params:
            break
        cursor = page.next_page_params

    logger.debug(
        "Aggregated token pages",
        extra={"ctx": {"pages": pages, "records": len(records), "quarantined": quarantined}},
    )
    return records
