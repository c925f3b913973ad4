"""SQLAlchemy implementation for marketplace jobs"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradie_market.db.models import MarketplaceJob
from tradie_market.modules.common.repository import AsyncRepository
from tradie_market.modules.common.time import ensure_utc
from tradie_market.modules.jobs.models import MarketplaceJob as MarketplaceJobRecord


class SqlJobRepository(AsyncRepository[MarketplaceJob]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def create(
        self,
        *,
        client_id: str,
        title: str,
        job_type: str,
        urgency_level: str,
        expires_at: datetime | None,
    ) -> MarketplaceJobRecord:
        job = MarketplaceJob(
            client_id=client_id,
            title=title,
            job_type=job_type,
            urgency_level=urgency_level,
            status="available",
            application_count=0,
            expires_at=expires_at,
        )
        await self.add(job)
        return self._to_domain(job)

    async def get(self, job_id: str) -> MarketplaceJobRecord | None:
        job = await self.session.get(MarketplaceJob, job_id, populate_existing=True)
        return self._to_domain(job) if job else None

    async def lock(self, job_id: str) -> MarketplaceJobRecord | None:
        stmt = (
            select(MarketplaceJob)
            .where(MarketplaceJob.id == job_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        job = result.scalars().first()
        return self._to_domain(job) if job else None

    async def increment_application_count(self, job_id: str) -> None:
        stmt = (
            update(MarketplaceJob)
            .where(MarketplaceJob.id == job_id)
            .values(application_count=MarketplaceJob.application_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def set_status(self, job_id: str, status: str) -> None:
        stmt = (
            update(MarketplaceJob)
            .where(MarketplaceJob.id == job_id)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    @staticmethod
    def _to_domain(model: MarketplaceJob) -> MarketplaceJobRecord:
        return MarketplaceJobRecord(
            id=model.id,
            client_id=model.client_id,
            title=model.title,
            job_type=model.job_type,
            urgency_level=model.urgency_level,
            status=model.status,
            application_count=int(model.application_count or 0),
            expires_at=ensure_utc(model.expires_at),
            created_at=ensure_utc(model.created_at),
        )
