"""Billing service - usage reporting over the ledger."""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from metering.billing.models import MeteredService, UsageCounter, UsageEvent
from metering.billing.quota import QuotaDecision, billing_period, get_quota_limit
from metering.billing.tiers import resolve_tier


async def get_usage_summary(db: AsyncSession, tenant_id: uuid.UUID) -> dict:
    """Current-period usage, cost and quota status per metered service."""
    tier = await resolve_tier(db, tenant_id)
    period = billing_period()

    counter_result = await db.execute(
        select(UsageCounter.service, UsageCounter.units_used)
        .where(UsageCounter.tenant_id == tenant_id, UsageCounter.period == period)
    )
    units_by_service = {row[0]: int(row[1]) for row in counter_result.all()}

    event_result = await db.execute(
        select(
            UsageEvent.service,
            func.coalesce(func.sum(UsageEvent.tokens_used), 0),
            func.coalesce(func.sum(UsageEvent.estimated_cost_cents), 0),
        )
        .where(UsageEvent.tenant_id == tenant_id, UsageEvent.period == period)
        .group_by(UsageEvent.service)
    )
    totals_by_service = {row[0]: (int(row[1]), int(row[2])) for row in event_result.all()}

    services = {}
    for service in MeteredService:
        units = units_by_service.get(service, 0)
        tokens, cost = totals_by_service.get(service, (0, 0))
        limit = await get_quota_limit(db, tier, service)
        decision = QuotaDecision.build(units, limit, 0)
        services[service] = {
            "units_used": units,
            "tokens_used": tokens,
            "cost_cents": cost,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "percentage_used": decision.percentage_used,
        }

    return {
        "tenant_id": tenant_id,
        "tier": tier,
        "period": period,
        "services": services,
        "total_cost_cents": sum(s["cost_cents"] for s in services.values()),
    }


async def get_usage_history(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    days: int = 30,
    service: MeteredService | None = None,
) -> list[dict]:
    """Daily usage totals per service, oldest first."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    day = func.date(UsageEvent.created_at).label("day")

    query = (
        select(
            day,
            UsageEvent.service,
            func.sum(UsageEvent.units_used),
            func.sum(UsageEvent.tokens_used),
            func.sum(UsageEvent.estimated_cost_cents),
        )
        .where(UsageEvent.tenant_id == tenant_id, UsageEvent.created_at >= since)
        .group_by(day, UsageEvent.service)
        .order_by(day)
    )
    if service is not None:
        query = query.where(UsageEvent.service == service)

    result = await db.execute(query)
    return [
        {
            "date": str(row[0]),
            "service": row[1],
            "units_used": int(row[2] or 0),
            "tokens_used": int(row[3] or 0),
            "cost_cents": int(row[4] or 0),
        }
        for row in result.all()
    ]
