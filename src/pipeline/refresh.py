"""Single-flight refresh of the token cache.

One ``TokenRefreshService`` per process owns the fetcher, the database
handle and the in-flight state. Scheduled ticks and read-driven cache
misses both go through it, so the pipeline never runs twice at once.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from config import TokenSyncConfig
from db.db_conn import DbConn
from db.tokens_repo import TokensRepo
from pipeline.aggregator import PageFetcher, aggregate_tokens
from pipeline.errors import RefreshTimeoutError
from pipeline.persist import persist_tokens
from pipeline.ranking import filter_and_rank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshResult:
    network: str
    fetched: int
    ranked: int
    persisted: int
    rejected: Tuple[str, ...]
    pruned: int
    started_at: datetime
    duration_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "fetched": self.fetched,
            "ranked": self.ranked,
            "persisted": self.persisted,
            "rejected": list(self.rejected),
            "pruned": self.pruned,
            "startedAt": self.started_at.isoformat(),
            "durationSeconds": round(self.duration_seconds, 3),
        }


class TokenRefreshService:
    """Runs aggregate -> rank -> persist, at most one run at a time."""

    def __init__(
        self,
        db: DbConn,
        fetcher: PageFetcher,
        config: TokenSyncConfig,
        repo: Optional[TokensRepo] = None,
    ) -> None:
        self.db = db
        self.fetcher = fetcher
        self.config = config
        self.repo = repo or TokensRepo()
        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="token-refresh")
        self.last_result: Optional[RefreshResult] = None
        self.last_error: Optional[str] = None

    @property
    def network(self) -> str:
        return self.config.network

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._inflight is not None and not self._inflight.done()

    def run_pipeline(self) -> RefreshResult:
        """Execute one refresh cycle in the calling thread.

        Callers normally go through ``trigger``; this is the unit of work it
        schedules. Errors propagate and leave the stored set untouched.
        """
        started_at = datetime.now(timezone.utc)
        t0 = time.monotonic()
        logger.info("Refreshing top tokens", extra={"ctx": {"network": self.network}})
        try:
            records = aggregate_tokens(self.fetcher, max_pages=self.config.max_pages)
            ranked = filter_and_rank(records, top_n=self.config.top_n)
            persisted = persist_tokens(
                self.db,
                ranked,
                self.network,
                repo=self.repo,
                prune_stale=self.config.prune_stale,
            )
        except Exception as exc:
            self.last_error = str(exc)
            logger.error(
                "Token refresh failed",
                exc_info=True,
                extra={"ctx": {"network": self.network, "error": str(exc), "type": type(exc).__name__}},
            )
            raise

        result = RefreshResult(
            network=self.network,
            fetched=len(records),
            ranked=len(ranked),
            persisted=persisted.written,
            rejected=persisted.rejected,
            pruned=persisted.pruned,
            started_at=started_at,
            duration_seconds=time.monotonic() - t0,
        )
        self.last_result = result
        self.last_error = None
        logger.info("Saved top tokens", extra={"ctx": result.to_dict()})
        return result

    def trigger(self) -> Tuple[Future, bool]:
        """Start a run unless one is in flight.

        Returns ``(future, started)``; when a run is already in flight its
        future is returned with ``started=False``.
        """
        with self._lock:
            if self._inflight is not None and not self._inflight.done():
                return self._inflight, False
            self._inflight = self._executor.submit(self.run_pipeline)
            return self._inflight, True

    def refresh_if_idle(self) -> Optional[RefreshResult]:
        """Run one cycle and wait for it; skip (return None) if one is in flight."""
        future, started = self.trigger()
        if not started:
            logger.info("Token refresh already in flight, skipping", extra={"ctx": {"network": self.network}})
            return None
        return future.result()

    def _has_rows(self) -> bool:
        with self.db.session_scope() as session:
            return self.repo.count(session, self.network) > 0

    def ensure_populated(self, timeout: Optional[float] = None) -> Optional[RefreshResult]:
        """Populate an empty cache before a read.

        When the network has rows nothing happens. Otherwise exactly one run is
        joined or started and awaited for up to ``timeout`` seconds.

        Raises:
            RefreshTimeoutError: The run did not finish in time; it keeps going.
            FetchError / PersistenceError: The run failed.
        """
        if self._has_rows():
            return None

        with self._lock:
            if self._inflight is not None and not self._inflight.done():
                future, started = self._inflight, False
            elif self._has_rows():
                # a run finished between the first check and the lock
                return None
            else:
                future = self._executor.submit(self.run_pipeline)
                self._inflight, started = future, True

        wait = self.config.cache_miss_timeout if timeout is None else timeout
        logger.info(
            "Token cache empty, waiting for refresh",
            extra={"ctx": {"network": self.network, "started": started, "timeout": wait}},
        )
        try:
            return future.result(timeout=wait)
        except FutureTimeout as exc:
            raise RefreshTimeoutError(f"Token refresh did not finish within {wait:g}s") from exc

    def status(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "running": self.is_running,
            "lastRefresh": self.last_result.to_dict() if self.last_result else None,
            "lastError": self.last_error,
        }

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting runs. An in-flight run finishes when ``wait`` is True."""
        self._executor.shutdown(wait=wait, cancel_futures=True)
