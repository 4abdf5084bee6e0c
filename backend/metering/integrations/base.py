"""Metered integration contract.

Every integration that spends tenant quota on a paid API runs through
`MeteredIntegration.run`:

    resolve tier -> evaluate quota -> invoke paid API -> cost -> record

A denied evaluation raises QuotaExceededError before the paid API is
touched. Recording never fails the call.
"""

import uuid
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from metering.billing.cost import estimate_cost
from metering.billing.exceptions import QuotaExceededError
from metering.billing.models import MeteredService
from metering.billing.quota import evaluate_quota
from metering.billing.recorder import record_usage
from metering.billing.tiers import resolve_tier
from metering.config import get_settings

logger = structlog.get_logger()


class MeteredCallState(StrEnum):
    PENDING = "pending"
    TIER_RESOLVED = "tier_resolved"
    QUOTA_CHECKED = "quota_checked"
    DENIED = "denied"
    API_INVOKED = "api_invoked"
    COST_RECORDED = "cost_recorded"


class Consumption(BaseModel):
    """Actual consumption reported by a provider for one call."""
    units_used: int
    tokens_used: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class MeteredIntegration(ABC):
    service: MeteredService
    operation_name: str
    requested_units: int = 1

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from metering.database import async_session
            session_factory = async_session
        self._session_factory = session_factory

    def units_for(self, request) -> int:
        """Nominal units checked against quota before the call."""
        return self.requested_units

    @abstractmethod
    async def invoke(self, request) -> Any:
        """Call the paid provider."""

    @abstractmethod
    def measure(self, request, result) -> Consumption:
        """Extract actual consumption from the provider's response."""

    def cost_for(self, consumption: Consumption) -> int:
        return estimate_cost(self.service, consumption.units_used)

    async def run(
        self,
        request,
        tenant_id: uuid.UUID | None = None,
        user_id: uuid.UUID | None = None,
    ) -> Any:
        if tenant_id is None or not get_settings().BILLING_ENABLED:
            return await self.invoke(request)

        log = logger.bind(
            tenant_id=str(tenant_id),
            service=self.service.value,
            operation=self.operation_name,
        )
        requested = self.units_for(request)
        log.debug("metered_call", state=MeteredCallState.PENDING)

        # Separate sessions: a failed tier lookup must not poison the quota read
        async with self._session_factory() as db:
            tier = await resolve_tier(db, tenant_id)
        log.debug("metered_call", state=MeteredCallState.TIER_RESOLVED, tier=tier)

        async with self._session_factory() as db:
            decision = await evaluate_quota(db, tenant_id, tier, self.service, requested)
        log.debug("metered_call", state=MeteredCallState.QUOTA_CHECKED, allowed=decision.allowed)

        if not decision.allowed:
            log.info(
                "metered_call",
                state=MeteredCallState.DENIED,
                current_usage=decision.current_usage,
                limit=decision.limit,
            )
            raise QuotaExceededError(self.service, decision)

        result = await self.invoke(request)
        log.debug("metered_call", state=MeteredCallState.API_INVOKED)

        try:
            consumption = self.measure(request, result)
            cost_cents = self.cost_for(consumption)
        except Exception as e:
            log.error("usage_measure_failed", error=str(e))
            return result

        async with self._session_factory() as db:
            await record_usage(
                db,
                tenant_id,
                self.service,
                self.operation_name,
                user_id=user_id,
                tokens_used=consumption.tokens_used,
                units_used=consumption.units_used,
                estimated_cost_cents=cost_cents,
                metadata=consumption.metadata,
            )
        log.debug(
            "metered_call",
            state=MeteredCallState.COST_RECORDED,
            units_used=consumption.units_used,
            tokens_used=consumption.tokens_used,
            estimated_cost_cents=cost_cents,
        )
        return result
