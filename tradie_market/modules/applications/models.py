"""Job application records and the status state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from tradie_market.modules.credits.models import CreditBalance

SUBMITTED = "submitted"
UNDER_REVIEW = "under_review"
SELECTED = "selected"
REJECTED = "rejected"
WITHDRAWN = "withdrawn"

APPLICATION_STATUSES = (SUBMITTED, UNDER_REVIEW, SELECTED, REJECTED, WITHDRAWN)
# Statuses that block another application for the same job/tradie pair.
ACTIVE_STATUSES = frozenset({SUBMITTED, UNDER_REVIEW, SELECTED})
OPEN_STATUSES = frozenset({SUBMITTED, UNDER_REVIEW})
TERMINAL_STATUSES = frozenset({SELECTED, REJECTED, WITHDRAWN})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    SUBMITTED: frozenset({UNDER_REVIEW, SELECTED, REJECTED, WITHDRAWN}),
    UNDER_REVIEW: frozenset({SELECTED, REJECTED}),
    SELECTED: frozenset(),
    REJECTED: frozenset(),
    WITHDRAWN: frozenset(),
}

APPLICATION_CREATED = "APPLICATION_CREATED"
STATUS_CHANGED = "STATUS_CHANGED"
APPLICATION_SELECTED = "APPLICATION_SELECTED"
APPLICATION_REJECTED = "APPLICATION_REJECTED"
APPLICATION_WITHDRAWN = "APPLICATION_WITHDRAWN"

ACTIVITY_DESCRIPTIONS = {
    APPLICATION_CREATED: "Application submitted",
    STATUS_CHANGED: "Status changed",
    APPLICATION_SELECTED: "Application selected for the job",
    APPLICATION_REJECTED: "Application rejected after another tradie was selected",
    APPLICATION_WITHDRAWN: "Application withdrawn",
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass(slots=True)
class ApplicationDraft:
    """What a tradie submits; everything else is decided by the workflow."""

    custom_quote_cents: Optional[int] = None
    proposed_timeline: Optional[str] = None
    cover_message: Optional[str] = None


@dataclass(slots=True)
class WithdrawalRequest:
    reason: Optional[str] = None
    refund_credits: bool = True


@dataclass(slots=True)
class JobApplication:
    id: str
    marketplace_job_id: str
    tradie_id: str
    status: str
    credits_used: int
    application_timestamp: datetime
    custom_quote_cents: Optional[int] = None
    proposed_timeline: Optional[str] = None
    cover_message: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(slots=True)
class ActivityEntry:
    application_id: str
    activity_type: str
    metadata: dict[str, Any]
    created_at: datetime
    id: Optional[int] = None

    @property
    def description(self) -> str:
        return ACTIVITY_DESCRIPTIONS.get(self.activity_type, "Activity recorded")


@dataclass(slots=True)
class SubmittedApplication:
    application: JobApplication
    balance: CreditBalance


@dataclass(slots=True)
class StatusChange:
    application: JobApplication
    previous_status: str
    client_id: str
    rejected: list[JobApplication] = field(default_factory=list)


@dataclass(slots=True)
class Withdrawal:
    application: JobApplication
    credits_refunded: int
    balance: Optional[CreditBalance] = None


@dataclass(slots=True)
class ApplicationPage:
    items: list[JobApplication] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def has_more(self) -> bool:
        return self.total > self.page * self.limit
