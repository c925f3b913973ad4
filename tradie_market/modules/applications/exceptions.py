"""Job application exceptions."""

from __future__ import annotations

from tradie_market.modules.common.exceptions import MarketplaceError


class ApplicationError(MarketplaceError):
    code = "APPLICATION_ERROR"


class DuplicateApplicationError(ApplicationError):
    """You have already applied to this job."""

    code = "DUPLICATE_APPLICATION"


class ApplicationNotFoundError(ApplicationError):
    """Application not found."""

    code = "APPLICATION_NOT_FOUND"
    category = "not_found"


class InvalidStatusTransitionError(ApplicationError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move application from {current} to {requested}")


class WithdrawalNotAllowedError(ApplicationError):
    """Application cannot be withdrawn at this time."""

    code = "WITHDRAWAL_NOT_ALLOWED"
    category = "forbidden"
