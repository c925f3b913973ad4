"""Notification event records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tradie_market.modules.common.time import utcnow

APPLICATION_SUBMITTED = "application_submitted"
TRADIE_SELECTED = "tradie_selected"
APPLICATION_REJECTED = "application_rejected"
APPLICATION_WITHDRAWN = "application_withdrawn"
AUTO_TOPUP_SUCCEEDED = "auto_topup_succeeded"
AUTO_TOPUP_FAILED = "auto_topup_failed"
TRIAL_CREDITS_AWARDED = "trial_credits_awarded"
LOW_BALANCE = "low_balance"
CRITICAL_BALANCE = "critical_balance"


@dataclass(slots=True)
class NotificationEvent:
    event_type: str
    user_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
