"""Marketplace job service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from tradie_market.infrastructure.database.repositories.job_repository import SqlJobRepository
from tradie_market.modules.common.time import ensure_utc, utcnow

from .exceptions import JobNotFoundError, JobUnavailableError
from .models import JOB_ASSIGNED, URGENCY_LEVELS, MarketplaceJob
from .repository import JobRepository


@dataclass(slots=True)
class JobService:
    repository: JobRepository
    clock: Callable[[], datetime] = utcnow

    @classmethod
    def with_session(cls, session: AsyncSession, clock: Callable[[], datetime] = utcnow) -> "JobService":
        return cls(SqlJobRepository(session), clock)

    async def create_job(
        self,
        *,
        client_id: str,
        title: str,
        job_type: str,
        urgency_level: str = "medium",
        expires_at: datetime | None = None,
    ) -> MarketplaceJob:
        urgency = urgency_level.strip().lower()
        if urgency not in URGENCY_LEVELS:
            urgency = "medium"
        return await self.repository.create(
            client_id=client_id,
            title=title,
            job_type=job_type.strip().lower(),
            urgency_level=urgency,
            expires_at=ensure_utc(expires_at),
        )

    async def get_job(self, job_id: str) -> MarketplaceJob:
        job = await self.repository.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    async def lock_job(self, job_id: str) -> MarketplaceJob:
        job = await self.repository.lock(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    async def require_available(self, job_id: str) -> MarketplaceJob:
        """Lock the job row and make sure it still accepts applications."""
        job = await self.lock_job(job_id)
        if not job.is_open(self.clock()):
            raise JobUnavailableError(f"Job {job_id} is {job.status} and no longer accepting applications")
        return job

    async def record_application(self, job_id: str) -> None:
        await self.repository.increment_application_count(job_id)

    async def mark_assigned(self, job_id: str) -> None:
        await self.repository.set_status(job_id, JOB_ASSIGNED)
