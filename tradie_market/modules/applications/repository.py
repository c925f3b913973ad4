"""Repository protocol for job applications and their activity log."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol, Sequence

from .models import ActivityEntry, ApplicationDraft, JobApplication


class ApplicationRepository(Protocol):
    async def find_active(self, job_id: str, tradie_id: str) -> JobApplication | None:
        ...

    async def create(
        self,
        *,
        application_id: str,
        job_id: str,
        tradie_id: str,
        draft: ApplicationDraft,
        credits_used: int,
        at: datetime,
    ) -> JobApplication:
        """Insert a submitted application.

        Raises ``DuplicateApplicationError`` when the active-pair unique index
        rejects the row.
        """
        ...

    async def get(self, application_id: str) -> JobApplication | None:
        ...

    async def lock(self, application_id: str) -> JobApplication | None:
        ...

    async def set_status(
        self,
        application_id: str,
        status: str,
        *,
        expected: Iterable[str],
    ) -> JobApplication | None:
        """Move the application to ``status`` if it is still in ``expected``."""
        ...

    async def reject_open_competitors(self, job_id: str, winner_id: str) -> Sequence[JobApplication]:
        ...

    async def list_for_job(self, job_id: str) -> Sequence[JobApplication]:
        ...

    async def list_for_tradie(
        self,
        tradie_id: str,
        *,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[Sequence[JobApplication], int]:
        ...

    async def add_activity(self, application_id: str, activity_type: str, metadata: dict[str, Any]) -> None:
        ...

    async def list_activity(self, application_id: str) -> Sequence[ActivityEntry]:
        ...
