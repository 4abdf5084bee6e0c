"""Billing models - usage ledger, period counters, quota limits, subscriptions."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    JSON, BigInteger, DateTime, Enum, Index, Integer, String,
    UniqueConstraint, Uuid, func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from metering.database import Base


class MeteredService(StrEnum):
    LLM_COMPLETION = "llm_completion"
    SMS = "sms"
    VOICE_CALL = "voice_call"
    TRANSACTIONAL_EMAIL = "transactional_email"


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


def _service_column() -> Enum:
    # Persist the enum values ("sms"), not the member names ("SMS")
    return Enum(
        MeteredService,
        native_enum=False,
        length=32,
        values_callable=lambda enum_cls: [member.value for member in enum_cls],
    )


_JSON = JSON().with_variant(JSONB, "postgresql")


class UsageEvent(Base):
    """Append-only record of one successful paid API call."""
    __tablename__ = "usage_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    service: Mapped[MeteredService] = mapped_column(_service_column(), nullable=False)
    operation_name: Mapped[str] = mapped_column(String(100), nullable=False)
    tokens_used: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    units_used: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    estimated_cost_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    metadata_extra: Mapped[dict | None] = mapped_column("metadata", _JSON, nullable=True)
    period: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_usage_events_tenant_service_period", "tenant_id", "service", "period"),
    )


class UsageCounter(Base):
    """Running units total per tenant, service and billing period."""
    __tablename__ = "usage_counters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    service: Mapped[MeteredService] = mapped_column(_service_column(), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    units_used: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("tenant_id", "service", "period", name="uq_usage_counters_tenant_service_period"),
    )


class QuotaLimit(Base):
    """Monthly unit ceiling per tier and metered service."""
    __tablename__ = "quota_limits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tier: Mapped[str] = mapped_column(String(50), nullable=False)
    service: Mapped[MeteredService] = mapped_column(_service_column(), nullable=False)
    monthly_limit: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("tier", "service", name="uq_quota_limits_tier_service"),
    )


class Subscription(Base):
    """Tenant billing plan."""
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    tier: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE)
    current_period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
