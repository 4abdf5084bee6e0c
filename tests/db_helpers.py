"""
Shared database fixtures for usage governor tests.

Each test case gets a fresh SQLite database file (aiosqlite) with the
governor tables created from the ORM metadata.
"""

import os
import shutil
import tempfile
import uuid
import unittest
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from metering.billing.models import (
    MeteredService, QuotaLimit, Subscription, UsageCounter, UsageEvent,
)
from metering.billing.quota import billing_period
from metering.database import Base


class LedgerTestCase(unittest.IsolatedAsyncioTestCase):
    """Async test case backed by a throwaway SQLite ledger."""

    async def asyncSetUp(self):
        self._tmpdir = tempfile.mkdtemp(prefix="ledger-")
        db_path = os.path.join(self._tmpdir, "ledger.db")
        self.engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        self.tenant_id = uuid.uuid4()

    async def asyncTearDown(self):
        await self.engine.dispose()
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    # ── Seeding ─────────────────────────────────────────────

    async def add_subscription(self, tenant_id, tier, status="active", created_at=None):
        async with self.session_factory() as db:
            db.add(Subscription(
                tenant_id=tenant_id,
                tier=tier,
                status=status,
                created_at=created_at or datetime.now(timezone.utc),
            ))
            await db.commit()

    async def add_limit(self, tier, service, monthly_limit):
        async with self.session_factory() as db:
            db.add(QuotaLimit(tier=tier, service=service, monthly_limit=monthly_limit))
            await db.commit()

    async def set_usage(self, tenant_id, service, units, period=None):
        async with self.session_factory() as db:
            db.add(UsageCounter(
                tenant_id=tenant_id,
                service=service,
                period=period or billing_period(),
                units_used=units,
            ))
            await db.commit()

    # ── Inspection ──────────────────────────────────────────

    async def event_count(self, tenant_id=None) -> int:
        query = select(func.count()).select_from(UsageEvent)
        if tenant_id is not None:
            query = query.where(UsageEvent.tenant_id == tenant_id)
        async with self.session_factory() as db:
            return (await db.execute(query)).scalar_one()

    async def events(self, tenant_id) -> list[UsageEvent]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(UsageEvent).where(UsageEvent.tenant_id == tenant_id).order_by(UsageEvent.created_at)
            )
            return list(result.scalars().all())

    async def counter(self, tenant_id, service: MeteredService) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                select(UsageCounter.units_used).where(
                    UsageCounter.tenant_id == tenant_id,
                    UsageCounter.service == service,
                    UsageCounter.period == billing_period(),
                )
            )
            return result.scalar_one_or_none() or 0
