"""Usage recording - append-only ledger writes after a paid call succeeds."""

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from metering.billing.models import MeteredService, UsageCounter, UsageEvent
from metering.billing.quota import billing_period

logger = structlog.get_logger()

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _counter_increment(dialect: str, tenant_id: uuid.UUID, service: MeteredService, period: str, units: int):
    """Single-statement upsert that adds `units` to the period counter."""
    insert = _UPSERT_DIALECTS[dialect]
    stmt = insert(UsageCounter).values(
        tenant_id=tenant_id,
        service=service,
        period=period,
        units_used=units,
    )
    return stmt.on_conflict_do_update(
        index_elements=["tenant_id", "service", "period"],
        set_={"units_used": UsageCounter.units_used + stmt.excluded.units_used},
    )


async def record_usage(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    service: MeteredService,
    operation_name: str,
    *,
    user_id: uuid.UUID | None = None,
    tokens_used: int = 0,
    units_used: int = 0,
    estimated_cost_cents: int = 0,
    metadata: dict | None = None,
) -> None:
    """
    Append one usage event and bump the tenant's period counter.

    Commits its own transaction. Never raises: a failed write is logged and
    dropped so the business request that triggered it still succeeds.
    """
    try:
        service = MeteredService(service)
        now = datetime.now(timezone.utc)
        period = billing_period(now)

        db.add(UsageEvent(
            tenant_id=tenant_id,
            user_id=user_id,
            service=service,
            operation_name=operation_name,
            tokens_used=tokens_used or 0,
            units_used=units_used or 0,
            estimated_cost_cents=estimated_cost_cents or 0,
            metadata_extra=metadata,
            period=period,
            created_at=now,
        ))
        if units_used:
            dialect = db.get_bind().dialect.name
            await db.execute(_counter_increment(dialect, tenant_id, service, period, units_used))
        await db.commit()
    except Exception as e:
        logger.error(
            "usage_record_failed",
            tenant_id=str(tenant_id),
            service=str(service),
            operation=operation_name,
            error=str(e),
        )
        try:
            await db.rollback()
        except Exception as rollback_error:
            logger.warning("usage_record_rollback_failed", error=str(rollback_error))
        return

    logger.debug(
        "usage_recorded",
        tenant_id=str(tenant_id),
        service=service.value,
        operation=operation_name,
        tokens_used=tokens_used,
        units_used=units_used,
        estimated_cost_cents=estimated_cost_cents,
    )
