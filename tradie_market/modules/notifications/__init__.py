"""Post-commit notification events."""

from .models import (
    APPLICATION_REJECTED,
    APPLICATION_SUBMITTED,
    APPLICATION_WITHDRAWN,
    AUTO_TOPUP_FAILED,
    AUTO_TOPUP_SUCCEEDED,
    CRITICAL_BALANCE,
    LOW_BALANCE,
    TRADIE_SELECTED,
    TRIAL_CREDITS_AWARDED,
    NotificationEvent,
)
from .sink import LoggingNotificationSink, NotificationSink

__all__ = [
    "APPLICATION_REJECTED",
    "APPLICATION_SUBMITTED",
    "APPLICATION_WITHDRAWN",
    "AUTO_TOPUP_FAILED",
    "AUTO_TOPUP_SUCCEEDED",
    "CRITICAL_BALANCE",
    "LOW_BALANCE",
    "TRADIE_SELECTED",
    "TRIAL_CREDITS_AWARDED",
    "LoggingNotificationSink",
    "NotificationEvent",
    "NotificationSink",
]
