from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text, func

from config import DEFAULT_NETWORK
from db.base import Base
from db.types import ExactDecimal


class Token(Base):
    __tablename__ = "tokens"

    # Contract address as reported by the explorer.
    address = Column(String(100), primary_key=True)
    # Network the token lives on, e.g. mantle.
    network = Column(String(50), primary_key=True, default=DEFAULT_NETWORK, server_default=DEFAULT_NETWORK)
    symbol = Column(String(100), nullable=True)
    name = Column(String(255), nullable=True)
    decimals = Column(Integer, nullable=True)
    price_usd = Column(ExactDecimal(), nullable=True)
    # Ranking key.
    circulating_market_cap = Column(ExactDecimal(), nullable=True)
    # Raw supply in base units, up to uint256.
    total_supply = Column(ExactDecimal(), nullable=True)
    holders = Column(Integer, nullable=True)
    icon_url = Column(Text, nullable=True)
    type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("decimals IS NULL OR decimals >= 0", name="ck_tokens_decimals"),
        CheckConstraint("holders IS NULL OR holders >= 0", name="ck_tokens_holders"),
        Index("ix_tokens_network_market_cap", "network", "circulating_market_cap"),
    )
