"""Marketplace job records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

JOB_AVAILABLE = "available"
JOB_ASSIGNED = "assigned"
JOB_EXPIRED = "expired"

JOB_STATUSES = (JOB_AVAILABLE, JOB_ASSIGNED, JOB_EXPIRED)
URGENCY_LEVELS = ("low", "medium", "high", "urgent")


@dataclass(slots=True)
class MarketplaceJob:
    id: str
    client_id: str
    title: str
    job_type: str
    urgency_level: str
    status: str
    application_count: int
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def is_open(self, now: datetime) -> bool:
        if self.status != JOB_AVAILABLE:
            return False
        return self.expires_at is None or self.expires_at > now
