"""Job application workflow exports"""

from .exceptions import (
    ApplicationError,
    ApplicationNotFoundError,
    DuplicateApplicationError,
    InvalidStatusTransitionError,
    WithdrawalNotAllowedError,
)
from .models import (
    ActivityEntry,
    ApplicationDraft,
    ApplicationPage,
    JobApplication,
    StatusChange,
    SubmittedApplication,
    Withdrawal,
    WithdrawalRequest,
)
from .service import ApplicationWorkflowService

__all__ = [
    "ActivityEntry",
    "ApplicationDraft",
    "ApplicationError",
    "ApplicationNotFoundError",
    "ApplicationPage",
    "ApplicationWorkflowService",
    "DuplicateApplicationError",
    "InvalidStatusTransitionError",
    "JobApplication",
    "StatusChange",
    "SubmittedApplication",
    "Withdrawal",
    "WithdrawalNotAllowedError",
    "WithdrawalRequest",
]
