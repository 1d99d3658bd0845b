"""Event store schema baseline

Revision ID: 20261018_01
Revises: None
Create Date: 2026-10-18
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "account",
        sa.Column("account_id", sa.Text(), primary_key=True),
        sa.Column("broker", sa.Text(), nullable=False),
        sa.Column("base_currency", sa.Text(), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("char_length(base_currency) = 3", name="ck_account_base_currency_iso"),
    )

    op.create_table(
        "security_listing",
        sa.Column("security_id", sa.Text(), nullable=False),
        sa.Column("symbol", sa.Text(), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=False, server_default=sa.text("'0001-01-01'")),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("security_id", "valid_from", name="pk_security_listing"),
    )
    op.create_index("ix_security_listing_symbol", "security_listing", ["symbol", "valid_from"])

    op.create_table(
        "ledger_event",
        sa.Column("ledger_event_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("account_id", sa.Text(), nullable=False),
        sa.Column("sequence", sa.BigInteger(), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["account_id"], ["account.account_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("account_id", "sequence", name="uq_ledger_event_account_sequence"),
        sa.CheckConstraint(
            "event_type IN ('trade', 'cash_movement', 'corporate_action')",
            name="ck_ledger_event_event_type",
        ),
    )
    op.create_index("ix_ledger_event_account_date", "ledger_event", ["account_id", "effective_date", "sequence"])

    op.create_table(
        "fx_rate",
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("rate_date", sa.Date(), nullable=False),
        sa.Column("rate", sa.Numeric(24, 10), nullable=False),
        sa.Column("source", sa.Text(), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("currency", "rate_date", name="pk_fx_rate"),
        sa.CheckConstraint("rate > 0", name="ck_fx_rate_positive"),
    )

    op.create_table(
        "market_price",
        sa.Column("security_id", sa.Text(), nullable=False),
        sa.Column("price_date", sa.Date(), nullable=False),
        sa.Column("close_price", sa.Numeric(24, 10), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("security_id", "price_date", name="pk_market_price"),
    )

    op.create_table(
        "replay_run",
        sa.Column("replay_run_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("account_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("failed_account_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("started_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("diagnostics", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "status IN ('started', 'success', 'partial_failure', 'failed')",
            name="ck_replay_run_status",
        ),
    )
    op.create_index("ix_replay_run_started_at_utc", "replay_run", ["started_at_utc"])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_replay_run_started_at_utc", table_name="replay_run")
    op.drop_table("replay_run")
    op.drop_table("market_price")
    op.drop_table("fx_rate")
    op.drop_index("ix_ledger_event_account_date", table_name="ledger_event")
    op.drop_table("ledger_event")
    op.drop_index("ix_security_listing_symbol", table_name="security_listing")
    op.drop_table("security_listing")
    op.drop_table("account")
