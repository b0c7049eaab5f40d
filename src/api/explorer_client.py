"""Blockscout explorer client responsible for token listing pages."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import requests

from pipeline.errors import FetchError
from pipeline.records import TokenPage, parse_page

TOKENS_PATH = "/api/v2/tokens"


class ExplorerApiError(FetchError):
    """Raised when the explorer responds with an error or the request fails."""


def cursor_to_params(cursor: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Render ``next_page_params`` as query parameters.

    Keys and values are forwarded unchanged; ``None`` values are dropped and
    booleans use the JSON spelling the explorer expects.
    """
    params: Dict[str, str] = {}
    for key, value in (cursor or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = str(value)
    return params


class ExplorerClient:
    """Thin wrapper over the explorer token listing endpoint.

    Reads the base URL and timeout from the central config module (see
    ``src/config.py``) unless they are passed explicitly.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Create a new explorer client.

        Parameters:
            base_url: Explorer root, e.g. ``https://explorer.mantle.xyz``.
                Defaults to EXPLORER_BASE_URL.
            timeout: Per-request timeout in seconds. Defaults to
                EXPLORER_TIMEOUT_SECONDS.
            session: Optional pre-built ``requests.Session``.
        """
        from config import get_token_sync_config

        cfg = get_token_sync_config()
        self.base_url = (base_url or cfg.explorer_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else cfg.request_timeout
        self._session = session or requests.Session()

    @property
    def tokens_url(self) -> str:
        return f"{self.base_url}{TOKENS_PATH}"

    def get_tokens_page(self, cursor: Optional[Mapping[str, Any]] = None) -> TokenPage:
        """
        Retrieve one page of the token listing.

        Parameters:
            cursor: ``next_page_params`` from the previous page, or None for
                the first page.

        Returns:
            Parsed ``TokenPage``. Malformed items are quarantined, not raised.

        Raises:
            ExplorerApiError: When the request fails, the status is not 2xx or
                the body is not a token listing.
        """
        params = cursor_to_params(cursor)
        try:
            resp = self._session.get(
                self.tokens_url,
                params=params or None,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise ExplorerApiError(f"Failed to retrieve token page: {exc}") from exc
        except ValueError as exc:
            raise ExplorerApiError(f"Token page is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
            raise ExplorerApiError("Token page has no 'items' list")
        return parse_page(payload)

    def close(self) -> None:
        self._session.close()
