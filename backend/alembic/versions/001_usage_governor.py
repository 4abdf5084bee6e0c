"""Usage governor tables: ledger, counters, quota limits, subscriptions.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

_DEFAULT_LIMITS = {
    "starter": {"llm_completion": 100, "sms": 100, "voice_call": 60, "transactional_email": 1000},
    "professional": {"llm_completion": 1000, "sms": 1000, "voice_call": 600, "transactional_email": 10000},
    "enterprise": {"llm_completion": 10000, "sms": 10000, "voice_call": 6000, "transactional_email": 100000},
}


def upgrade() -> None:
    # Usage events (append-only ledger)
    op.create_table(
        "usage_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("service", sa.String(32), nullable=False),
        sa.Column("operation_name", sa.String(100), nullable=False),
        sa.Column("tokens_used", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("units_used", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("estimated_cost_cents", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_usage_events_tenant_service_period", "usage_events", ["tenant_id", "service", "period"])

    # Period counters (atomic upsert-increment target)
    op.create_table(
        "usage_counters",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("service", sa.String(32), nullable=False),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("units_used", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("tenant_id", "service", "period", name="uq_usage_counters_tenant_service_period"),
    )

    # Quota limits per tier and service
    quota_limits = op.create_table(
        "quota_limits",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tier", sa.String(50), nullable=False),
        sa.Column("service", sa.String(32), nullable=False),
        sa.Column("monthly_limit", sa.BigInteger, nullable=False),
        sa.UniqueConstraint("tier", "service", name="uq_quota_limits_tier_service"),
    )
    op.bulk_insert(
        quota_limits,
        [
            {"tier": tier, "service": service, "monthly_limit": limit}
            for tier, limits in _DEFAULT_LIMITS.items()
            for service, limit in limits.items()
        ],
    )

    # Subscriptions
    op.create_table(
        "subscriptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("tier", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("subscriptions")
    op.drop_table("quota_limits")
    op.drop_table("usage_counters")
    op.drop_index("ix_usage_events_tenant_service_period", table_name="usage_events")
    op.drop_table("usage_events")
