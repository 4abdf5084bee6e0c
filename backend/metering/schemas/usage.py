"""Usage governor schemas."""

import uuid
from pydantic import BaseModel, Field

from metering.billing.models import MeteredService


class QuotaCheckRequest(BaseModel):
    tenant_id: uuid.UUID
    tier_label: str = Field(min_length=1, max_length=50)
    service: MeteredService
    requested_units: int = Field(default=1, ge=1)


class UsageEventCreate(BaseModel):
    tenant_id: uuid.UUID
    user_id: uuid.UUID | None = None
    service: MeteredService
    operation_name: str = Field(min_length=1, max_length=100)
    tokens_used: int = Field(default=0, ge=0)
    units_used: int = Field(default=0, ge=0)
    estimated_cost_cents: int = Field(default=0, ge=0)
    metadata: dict | None = None


class ServiceUsage(BaseModel):
    units_used: int
    tokens_used: int
    cost_cents: int
    limit: int
    remaining: int
    percentage_used: float


class UsageSummaryOut(BaseModel):
    tenant_id: uuid.UUID
    tier: str
    period: str
    services: dict[MeteredService, ServiceUsage]
    total_cost_cents: int


class UsageHistoryPoint(BaseModel):
    date: str
    service: MeteredService
    units_used: int
    tokens_used: int
    cost_cents: int


class UsageHistoryOut(BaseModel):
    tenant_id: uuid.UUID
    days: int
    history: list[UsageHistoryPoint]
