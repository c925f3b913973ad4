"""SQLAlchemy implementation for job applications and the activity log"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradie_market.db.models import ApplicationActivityLog, JobApplication
from tradie_market.modules.applications.exceptions import DuplicateApplicationError
from tradie_market.modules.applications.models import (
    ACTIVE_STATUSES,
    OPEN_STATUSES,
    REJECTED,
    SUBMITTED,
    ActivityEntry,
    ApplicationDraft,
    JobApplication as JobApplicationRecord,
)
from tradie_market.modules.common.repository import AsyncRepository
from tradie_market.modules.common.time import ensure_utc, utcnow


class SqlApplicationRepository(AsyncRepository[JobApplication]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def find_active(self, job_id: str, tradie_id: str) -> JobApplicationRecord | None:
        stmt = select(JobApplication).where(
            JobApplication.marketplace_job_id == job_id,
            JobApplication.tradie_id == tradie_id,
            JobApplication.status.in_(ACTIVE_STATUSES),
        )
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        return self._to_domain(row) if row else None

    async def create(
        self,
        *,
        application_id: str,
        job_id: str,
        tradie_id: str,
        draft: ApplicationDraft,
        credits_used: int,
        at: datetime,
    ) -> JobApplicationRecord:
        application = JobApplication(
            id=application_id,
            marketplace_job_id=job_id,
            tradie_id=tradie_id,
            custom_quote_cents=draft.custom_quote_cents,
            proposed_timeline=draft.proposed_timeline,
            cover_message=draft.cover_message,
            status=SUBMITTED,
            credits_used=credits_used,
            application_timestamp=at,
            updated_at=at,
        )
        try:
            await self.add(application)
        except IntegrityError as exc:
            raise DuplicateApplicationError() from exc
        return self._to_domain(application)

    async def get(self, application_id: str) -> JobApplicationRecord | None:
        application = await self.session.get(JobApplication, application_id, populate_existing=True)
        return self._to_domain(application) if application else None

    async def lock(self, application_id: str) -> JobApplicationRecord | None:
        stmt = (
            select(JobApplication)
            .where(JobApplication.id == application_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        application = result.scalars().first()
        return self._to_domain(application) if application else None

    async def set_status(
        self,
        application_id: str,
        status: str,
        *,
        expected: Iterable[str],
    ) -> JobApplicationRecord | None:
        stmt = (
            update(JobApplication)
            .where(JobApplication.id == application_id)
            .where(JobApplication.status.in_(tuple(expected)))
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(JobApplication)
        )
        result = await self.session.execute(stmt)
        application = result.scalars().first()
        return self._to_domain(application) if application else None

    async def reject_open_competitors(self, job_id: str, winner_id: str) -> Sequence[JobApplicationRecord]:
        stmt = (
            update(JobApplication)
            .where(JobApplication.marketplace_job_id == job_id)
            .where(JobApplication.id != winner_id)
            .where(JobApplication.status.in_(OPEN_STATUSES))
            .values(status=REJECTED, updated_at=utcnow())
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(JobApplication)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(row) for row in result.scalars().all()]

    async def list_for_job(self, job_id: str) -> Sequence[JobApplicationRecord]:
        stmt = (
            select(JobApplication)
            .where(JobApplication.marketplace_job_id == job_id)
            .order_by(JobApplication.application_timestamp, JobApplication.id)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(row) for row in result.scalars().all()]

    async def list_for_tradie(
        self,
        tradie_id: str,
        *,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[Sequence[JobApplicationRecord], int]:
        conditions = [JobApplication.tradie_id == tradie_id]
        if status:
            conditions.append(JobApplication.status == status)

        count_stmt = select(func.count()).select_from(JobApplication).where(*conditions)
        total = int((await self.session.execute(count_stmt)).scalar() or 0)

        stmt = (
            select(JobApplication)
            .where(*conditions)
            .order_by(desc(JobApplication.application_timestamp), desc(JobApplication.id))
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(row) for row in result.scalars().all()], total

    async def add_activity(self, application_id: str, activity_type: str, metadata: dict[str, Any]) -> None:
        entry = ApplicationActivityLog(
            application_id=application_id,
            activity_type=activity_type,
            event_metadata=json.dumps(metadata, default=str),
            created_at=utcnow(),
        )
        self.session.add(entry)
        await self.session.flush()

    async def list_activity(self, application_id: str) -> Sequence[ActivityEntry]:
        stmt = (
            select(ApplicationActivityLog)
            .where(ApplicationActivityLog.application_id == application_id)
            .order_by(ApplicationActivityLog.created_at, ApplicationActivityLog.id)
        )
        result = await self.session.execute(stmt)
        return [
            ActivityEntry(
                id=row.id,
                application_id=row.application_id,
                activity_type=row.activity_type,
                metadata=json.loads(row.event_metadata or "{}"),
                created_at=ensure_utc(row.created_at),
            )
            for row in result.scalars().all()
        ]

    @staticmethod
    def _to_domain(model: JobApplication) -> JobApplicationRecord:
        return JobApplicationRecord(
            id=model.id,
            marketplace_job_id=model.marketplace_job_id,
            tradie_id=model.tradie_id,
            status=model.status,
            credits_used=int(model.credits_used or 0),
            application_timestamp=ensure_utc(model.application_timestamp),
            custom_quote_cents=model.custom_quote_cents,
            proposed_timeline=model.proposed_timeline,
            cover_message=model.cover_message,
            updated_at=ensure_utc(model.updated_at),
        )
