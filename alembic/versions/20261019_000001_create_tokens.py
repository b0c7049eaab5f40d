"""create tokens table

Revision ID: 3f1a2b4c5d6e
Revises:
Create Date: 2026-10-19 09:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f1a2b4c5d6e"
down_revision = None
branch_labels = None
depends_on = None


def _exact_decimal():
    # unbounded NUMERIC; SQLite keeps the plain decimal text
    return sa.Numeric().with_variant(sa.Text(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "tokens",
        sa.Column("address", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("network", sa.String(length=50), primary_key=True, nullable=False, server_default="mantle"),
        sa.Column("symbol", sa.String(length=100), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("decimals", sa.Integer(), nullable=True),
        sa.Column("price_usd", _exact_decimal(), nullable=True),
        sa.Column("circulating_market_cap", _exact_decimal(), nullable=True),
        sa.Column("total_supply", _exact_decimal(), nullable=True),
        sa.Column("holders", sa.Integer(), nullable=True),
        sa.Column("icon_url", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("decimals IS NULL OR decimals >= 0", name="ck_tokens_decimals"),
        sa.CheckConstraint("holders IS NULL OR holders >= 0", name="ck_tokens_holders"),
    )
    op.create_index("ix_tokens_network_market_cap", "tokens", ["network", "circulating_market_cap"])


def downgrade() -> None:
    op.drop_index("ix_tokens_network_market_cap", table_name="tokens")
    op.drop_table("tokens")
