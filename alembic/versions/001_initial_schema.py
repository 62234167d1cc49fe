"""Initial schema - users, affiliates, partner groups, referrals, ledger, payouts, tracking.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Users (admins and affiliates)
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="AFFILIATE"),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        *_timestamps(),
    )
    op.create_index("ix_users_role", "users", ["role"])

    # Partner groups (commission tiers)
    op.create_table(
        "partner_groups",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("commission_rate", sa.Float, nullable=False),
        sa.Column("signup_url", sa.String(500)),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_partner_groups_is_default", "partner_groups", ["is_default"])

    # Affiliates
    op.create_table(
        "affiliates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"),
                  nullable=False, unique=True),
        sa.Column("referral_code", sa.String(50), nullable=False, unique=True),
        sa.Column("partner_group_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("partner_groups.id")),
        sa.Column("total_clicks", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_leads", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_revenue_cents", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("balance_cents", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("payout_details", postgresql.JSONB, server_default="{}"),
        *_timestamps(),
    )
    op.create_index("ix_affiliates_partner_group", "affiliates", ["partner_group_id"])

    # Referrals (leads)
    op.create_table(
        "referrals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("affiliate_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("affiliates.id"), nullable=False),
        sa.Column("lead_name", sa.String(255), nullable=False),
        sa.Column("lead_email", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("metadata", postgresql.JSONB, server_default="{}"),
        *_timestamps(),
    )
    op.create_index("ix_referrals_affiliate_email", "referrals", ["affiliate_id", "lead_email"])
    op.create_index("ix_referrals_status", "referrals", ["status"])

    # Payouts
    op.create_table(
        "payouts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("affiliate_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("affiliates.id"), nullable=False),
        sa.Column("amount_cents", sa.BigInteger, nullable=False),
        sa.Column("commission_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("method", sa.String(50), nullable=False, server_default="Bank Transfer"),
        sa.Column("notes", sa.Text),
        sa.Column("created_by", postgresql.UUID(as_uuid=True)),
        *_timestamps(),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_payouts_affiliate", "payouts", ["affiliate_id"])
    op.create_index("ix_payouts_status", "payouts", ["status"])

    # Transactions (commission ledger)
    op.create_table(
        "transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("referral_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("referrals.id"), nullable=False),
        sa.Column("affiliate_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("affiliates.id"), nullable=False),
        sa.Column("payout_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("payouts.id")),
        sa.Column("customer_name", sa.String(255)),
        sa.Column("customer_email", sa.String(255)),
        sa.Column("amount_cents", sa.BigInteger, nullable=False),
        sa.Column("commission_cents", sa.BigInteger, nullable=False),
        sa.Column("commission_rate", sa.Float, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("description", sa.Text),
        sa.Column("invoice_id", sa.String(100)),
        sa.Column("payment_method", sa.String(50)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("created_by", postgresql.UUID(as_uuid=True)),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint(
            "commission_cents >= 0 AND commission_cents <= amount_cents",
            name="ck_transactions_commission_bounds",
        ),
    )
    op.create_index("ix_transactions_affiliate_status", "transactions", ["affiliate_id", "status"])
    op.create_index("ix_transactions_referral", "transactions", ["referral_id"])
    op.create_index("ix_transactions_payout", "transactions", ["payout_id"])

    # Conversion events (clicks and purchases)
    op.create_table(
        "conversions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("affiliate_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("affiliates.id"), nullable=False),
        sa.Column("referral_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("referrals.id")),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("amount_cents", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("event_metadata", postgresql.JSONB, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_conversions_affiliate_type", "conversions", ["affiliate_id", "event_type"])
    op.create_index("ix_conversions_created_at", "conversions", ["created_at"])

    # Tracking integration keys
    op.create_table(
        "integration_settings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"),
                  nullable=False, unique=True),
        sa.Column("public_key", sa.String(100), nullable=False, unique=True),
        sa.Column("api_key", sa.String(100), nullable=False, unique=True),
        sa.Column("provider", sa.String(50), nullable=False, server_default="reftrack"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("webhook_url", sa.String(500)),
        sa.Column("config", postgresql.JSONB, server_default="{}"),
        *_timestamps(),
    )
    op.create_index("ix_integration_public_key_active", "integration_settings", ["public_key", "is_active"])


def downgrade() -> None:
    op.drop_table("integration_settings")
    op.drop_table("conversions")
    op.drop_table("transactions")
    op.drop_table("payouts")
    op.drop_table("referrals")
    op.drop_table("affiliates")
    op.drop_table("partner_groups")
    op.drop_table("users")
