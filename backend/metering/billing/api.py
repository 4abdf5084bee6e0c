"""Billing API endpoints - quota checks, usage ingestion and reporting."""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from metering.billing.models import MeteredService
from metering.billing.quota import QuotaDecision, evaluate_quota
from metering.billing.recorder import record_usage
from metering.billing.service import get_usage_history, get_usage_summary
from metering.database import get_db
from metering.schemas.usage import (
    QuotaCheckRequest, UsageEventCreate, UsageHistoryOut, UsageSummaryOut,
)

router = APIRouter(tags=["billing"])


@router.post("/quota/check", response_model=QuotaDecision)
async def check_quota(
    body: QuotaCheckRequest,
    db: AsyncSession = Depends(get_db),
):
    """Evaluate whether a metered call fits in the tenant's quota."""
    return await evaluate_quota(db, body.tenant_id, body.tier_label, body.service, body.requested_units)


@router.post("/usage/events", status_code=status.HTTP_202_ACCEPTED)
async def create_usage_event(
    body: UsageEventCreate,
    db: AsyncSession = Depends(get_db),
):
    """Append a usage event for a completed paid call (fire-and-forget)."""
    await record_usage(
        db,
        body.tenant_id,
        body.service,
        body.operation_name,
        user_id=body.user_id,
        tokens_used=body.tokens_used,
        units_used=body.units_used,
        estimated_cost_cents=body.estimated_cost_cents,
        metadata=body.metadata,
    )
    return {"status": "accepted"}


@router.get("/tenants/{tenant_id}/usage", response_model=UsageSummaryOut)
async def get_tenant_usage(
    tenant_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Current billing period usage and quota status for a tenant."""
    return await get_usage_summary(db, tenant_id)


@router.get("/tenants/{tenant_id}/usage/history", response_model=UsageHistoryOut)
async def get_tenant_usage_history(
    tenant_id: uuid.UUID,
    service: MeteredService | None = None,
    days: int = Query(default=30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    """Daily usage totals over the last `days` days."""
    history = await get_usage_history(db, tenant_id, days=days, service=service)
    return {"tenant_id": tenant_id, "days": days, "history": history}
