"""Tier resolution - maps a tenant to its current billing tier."""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from metering.billing.models import Subscription, SubscriptionStatus
from metering.config import get_settings

logger = structlog.get_logger()


def default_tier() -> str:
    return get_settings().DEFAULT_TIER


async def resolve_tier(db: AsyncSession, tenant_id: uuid.UUID) -> str:
    """
    Return the tier of the tenant's most recent active subscription.

    Looked up on every call so plan changes apply mid-period. Any failure,
    or no active subscription, degrades the tenant to the baseline tier.
    """
    try:
        result = await db.execute(
            select(Subscription.tier)
            .where(
                Subscription.tenant_id == tenant_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        row = result.first()
    except Exception as e:
        logger.warning("tier_lookup_failed", tenant_id=str(tenant_id), error=str(e))
        # Leave the session usable for the caller's next query
        try:
            await db.rollback()
        except Exception as rollback_error:
            logger.warning("tier_lookup_rollback_failed", error=str(rollback_error))
        return default_tier()

    if row is None:
        return default_tier()
    return row[0] or default_tier()
