"""Explorer token sync pipeline: fetch, rank, persist and schedule."""

from pipeline.aggregator import aggregate_tokens
from pipeline.errors import (
    ConversionError,
    FetchError,
    PersistenceError,
    RefreshTimeoutError,
    TokenSyncError,
    UnknownNetworkError,
)
from pipeline.ranking import filter_and_rank, merge_by_address
from pipeline.records import TokenPage, TokenRecord

__all__ = [
    "ConversionError",
    "FetchError",
    "PersistenceError",
    "RefreshTimeoutError",
    "TokenPage",
    "TokenRecord",
    "TokenSyncError",
    "UnknownNetworkError",
    "aggregate_tokens",
    "filter_and_rank",
    "merge_by_address",
]
