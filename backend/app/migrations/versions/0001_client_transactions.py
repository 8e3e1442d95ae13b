"""Client transaction store for cost-basis replays."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_client_transactions"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "client_transaction",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("asset", sa.String(length=32), nullable=False),
        # Decimal amounts are stored as exact text.
        sa.Column("quantity", sa.String(length=64), nullable=False),
        sa.Column("unit_price", sa.String(length=64), nullable=True),
        sa.Column("fee", sa.String(length=64), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("client_id", "external_id", name="uq_client_transaction_external_id"),
    )
    op.create_index("ix_client_transaction_client_id", "client_transaction", ["client_id"])
    op.create_index(
        "ix_client_transaction_client_timestamp",
        "client_transaction",
        ["client_id", "timestamp"],
    )


def downgrade() -> None:
    op.drop_index("ix_client_transaction_client_timestamp", table_name="client_transaction")
    op.drop_index("ix_client_transaction_client_id", table_name="client_transaction")
    op.drop_table("client_transaction")
