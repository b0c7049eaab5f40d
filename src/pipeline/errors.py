"""Error taxonomy for the token sync pipeline."""
from __future__ import annotations

from typing import Any, Optional


class TokenSyncError(RuntimeError):
    """Base class for failures raised by the token sync pipeline."""


class FetchError(TokenSyncError):
    """Raised when an upstream page cannot be fetched or decoded."""


class ConversionError(TokenSyncError):
    """Raised when a token field cannot be converted to its store type."""

    def __init__(self, address: str, field: str, value: Any, reason: Optional[str] = None) -> None:
        self.address = address
        self.field = field
        self.value = value
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot convert {field}={value!r} for token {address}{detail}")


class PersistenceError(TokenSyncError):
    """Raised when the store rejects a batch write or read."""


class RefreshTimeoutError(TokenSyncError):
    """Raised when a read-driven refresh does not finish within its timeout."""


class UnknownNetworkError(TokenSyncError):
    """Raised when a caller asks for a network this deployment does not serve."""

    def __init__(self, network: str) -> None:
        self.network = network
        super().__init__(f"Network '{network}' is not supported")
