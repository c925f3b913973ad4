"""Repository protocol for marketplace jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .models import MarketplaceJob


class JobRepository(Protocol):
    async def create(
        self,
        *,
        client_id: str,
        title: str,
        job_type: str,
        urgency_level: str,
        expires_at: datetime | None,
    ) -> MarketplaceJob:
        ...

    async def get(self, job_id: str) -> MarketplaceJob | None:
        ...

    async def lock(self, job_id: str) -> MarketplaceJob | None:
        ...

    async def increment_application_count(self, job_id: str) -> None:
        ...

    async def set_status(self, job_id: str, status: str) -> None:
        ...
