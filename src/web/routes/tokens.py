from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import AliasGenerator, BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from db.tokens_repo import TokensRepo
from pipeline.errors import UnknownNetworkError
from pipeline.refresh import TokenRefreshService
from web.deps import get_db, get_refresh_service
from web.responses import api_success

router = APIRouter(prefix="/api/v1", tags=["tokens"])
repo = TokensRepo()


class PersistedToken(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=AliasGenerator(serialization_alias=to_camel))

    address: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    decimals: Optional[int] = None
    price_usd: Optional[Decimal] = None
    circulating_market_cap: Optional[Decimal] = None
    total_supply: Optional[Decimal] = None
    holders: Optional[int] = None
    icon_url: Optional[str] = None
    type: str
    network: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer("price_usd", "circulating_market_cap", "total_supply")
    def _plain_decimal(self, value: Optional[Decimal]) -> Optional[str]:
        if value is None:
            return None
        # normalize() would round to the context precision
        text = format(value, "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text


def _check_network(network: str, service: TokenRefreshService) -> str:
    network = network.strip().lower()
    if network != service.network:
        raise UnknownNetworkError(network)
    return network


@router.get("/{network}/tokens")
def list_tokens(
    network: str,
    session: Session = Depends(get_db),
    service: TokenRefreshService = Depends(get_refresh_service),
) -> JSONResponse:
    """
    Top tokens of ``network`` by circulating market cap, at most 100.

    An empty cache is populated synchronously before answering.
    """
    network = _check_network(network, service)
    service.ensure_populated()
    rows = repo.list_top(session, network)
    data = [PersistedToken.model_validate(r).model_dump(mode="json", by_alias=True) for r in rows]
    return api_success(data)


@router.get("/{network}/tokens/status")
def token_refresh_status(
    network: str,
    service: TokenRefreshService = Depends(get_refresh_service),
) -> JSONResponse:
    """Refresh state of ``network``: whether a run is in flight and the last outcome."""
    _check_network(network, service)
    return api_success(service.status())
