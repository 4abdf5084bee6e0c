"""Quota evaluation - read-only check of period usage against tier limits.

All calendar-month bucketing lives in `billing_period`; the recorder stamps
events and counters with the same function.
"""

import uuid
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from metering.billing.exceptions import QuotaUnavailableError
from metering.billing.models import MeteredService, QuotaLimit, UsageCounter
from metering.config import get_settings

logger = structlog.get_logger()

# Limit reported when the ledger is unreachable and quota fails open
UNLIMITED_QUOTA = 2_147_483_647

DEFAULT_QUOTA_LIMITS: dict[str, dict[MeteredService, int]] = {
    "starter": {
        MeteredService.LLM_COMPLETION: 100,
        MeteredService.SMS: 100,
        MeteredService.VOICE_CALL: 60,
        MeteredService.TRANSACTIONAL_EMAIL: 1_000,
    },
    "professional": {
        MeteredService.LLM_COMPLETION: 1_000,
        MeteredService.SMS: 1_000,
        MeteredService.VOICE_CALL: 600,
        MeteredService.TRANSACTIONAL_EMAIL: 10_000,
    },
    "enterprise": {
        MeteredService.LLM_COMPLETION: 10_000,
        MeteredService.SMS: 10_000,
        MeteredService.VOICE_CALL: 6_000,
        MeteredService.TRANSACTIONAL_EMAIL: 100_000,
    },
}

for _tier, _limits in DEFAULT_QUOTA_LIMITS.items():
    if set(_limits) != set(MeteredService):
        raise RuntimeError(f"default quota limits for tier {_tier!r} do not cover every metered service")


class QuotaDecision(BaseModel):
    """Result of a quota evaluation."""
    allowed: bool
    current_usage: int
    limit: int
    remaining: int
    percentage_used: float

    @classmethod
    def build(cls, current_usage: int, limit: int, requested_units: int) -> "QuotaDecision":
        if limit > 0:
            percentage = round(current_usage / limit * 100, 2)
        else:
            percentage = 100.0 if current_usage > 0 else 0.0
        return cls(
            allowed=current_usage + requested_units <= limit,
            current_usage=current_usage,
            limit=limit,
            remaining=max(0, limit - current_usage),
            percentage_used=percentage,
        )

    @classmethod
    def unlimited(cls) -> "QuotaDecision":
        return cls(
            allowed=True,
            current_usage=0,
            limit=UNLIMITED_QUOTA,
            remaining=UNLIMITED_QUOTA,
            percentage_used=0.0,
        )


def billing_period(moment: datetime | None = None) -> str:
    """Calendar-month billing period key ('YYYY-MM', UTC)."""
    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m")


def default_limit(tier: str, service: MeteredService) -> int:
    """Built-in limit used when no quota_limits row exists for (tier, service)."""
    limits = DEFAULT_QUOTA_LIMITS.get(tier) or DEFAULT_QUOTA_LIMITS.get(get_settings().DEFAULT_TIER)
    if limits is None:
        raise LookupError(f"no default quota limits for tier {tier!r} or the baseline tier")
    return limits[MeteredService(service)]


async def get_quota_limit(db: AsyncSession, tier: str, service: MeteredService) -> int:
    result = await db.execute(
        select(QuotaLimit.monthly_limit).where(QuotaLimit.tier == tier, QuotaLimit.service == service)
    )
    limit = result.scalar_one_or_none()
    return default_limit(tier, service) if limit is None else limit


async def evaluate_quota(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    tier: str,
    service: MeteredService,
    requested_units: int = 1,
) -> QuotaDecision:
    """
    Decide whether `requested_units` more units fit in this period's quota.

    Performs no writes. If the lookup fails the call is allowed with an
    unlimited sentinel (QUOTA_FAIL_OPEN) or QuotaUnavailableError is raised.
    """
    service = MeteredService(service)
    period = billing_period()

    limit_q = (
        select(QuotaLimit.monthly_limit)
        .where(QuotaLimit.tier == tier, QuotaLimit.service == service)
        .scalar_subquery()
    )
    usage_q = (
        select(UsageCounter.units_used)
        .where(
            UsageCounter.tenant_id == tenant_id,
            UsageCounter.service == service,
            UsageCounter.period == period,
        )
        .scalar_subquery()
    )

    try:
        result = await db.execute(
            select(limit_q.label("monthly_limit"), func.coalesce(usage_q, 0).label("units_used"))
        )
        monthly_limit, current_usage = result.one()
        if monthly_limit is None:
            monthly_limit = default_limit(tier, service)
    except Exception as e:
        logger.warning(
            "quota_check_failed",
            tenant_id=str(tenant_id),
            service=service.value,
            error=str(e),
            fail_open=get_settings().QUOTA_FAIL_OPEN,
        )
        if get_settings().QUOTA_FAIL_OPEN:
            return QuotaDecision.unlimited()
        raise QuotaUnavailableError(f"quota for {service.value} could not be evaluated") from e

    decision = QuotaDecision.build(int(current_usage), int(monthly_limit), requested_units)
    if not decision.allowed:
        logger.info(
            "quota_denied",
            tenant_id=str(tenant_id),
            tier=tier,
            service=service.value,
            current_usage=decision.current_usage,
            limit=decision.limit,
            requested_units=requested_units,
        )
    return decision
