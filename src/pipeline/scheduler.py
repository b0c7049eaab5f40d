from __future__ import annotations

import logging
import threading
from typing import Optional

from config import TokenSyncConfig
from pipeline.refresh import TokenRefreshService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 20 * 60


class RefreshScheduler:
    """
    Background timer that refreshes the token cache on a fixed interval.

    A tick that finds a run still in flight is skipped. Failures are logged
    and retried on the next tick only.
    """

    def __init__(
        self,
        service: TokenRefreshService,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        run_on_start: bool = False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.service = service
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @classmethod
    def from_config(cls, service: TokenRefreshService, config: TokenSyncConfig) -> "RefreshScheduler":
        return cls(
            service,
            interval_seconds=config.refresh_interval_seconds,
            run_on_start=config.refresh_on_startup,
        )

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> None:
        """Run one scheduled refresh without raising.

        The service already logs a failed run with its traceback; the tick only
        notes that the next attempt waits for the following interval.
        """
        try:
            result = self.service.refresh_if_idle()
        except Exception as exc:
            logger.info(
                "Scheduled token refresh failed, retrying in %ss",
                self.interval_seconds,
                extra={"ctx": {"network": self.service.network, "error": str(exc)}},
            )
            return
        if result is not None:
            logger.info(
                "Scheduled token refresh saved %d tokens",
                result.persisted,
                extra={"ctx": {"network": result.network, "rejected": len(result.rejected)}},
            )

    def _loop(self) -> None:
        if self.run_on_start:
            self.tick()
        while not self._stop_event.wait(self.interval_seconds):
            self.tick()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="token-refresh-scheduler", daemon=True)
        self._thread.start()
        logger.info(
            "Token refresh scheduler started",
            extra={"ctx": {"network": self.service.network, "interval_seconds": self.interval_seconds}},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Stop ticking, let an in-flight run finish and release the service."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        self.service.shutdown(wait=True)
        logger.info("Token refresh scheduler stopped", extra={"ctx": {"network": self.service.network}})
