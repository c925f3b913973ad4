"""Translate domain errors into HTTP responses."""

from fastapi import HTTPException, status

from tradie_market.modules.applications.exceptions import (
    ApplicationNotFoundError,
    DuplicateApplicationError,
    InvalidStatusTransitionError,
    WithdrawalNotAllowedError,
)
from tradie_market.modules.common.exceptions import (
    MarketplaceError,
    TransientStoreError,
    UnauthorizedActionError,
)
from tradie_market.modules.credits.exceptions import (
    CreditBalanceNotFoundError,
    InsufficientCreditsError,
    InvalidCreditAmountError,
)
from tradie_market.modules.jobs.exceptions import JobNotFoundError, JobUnavailableError
from tradie_market.modules.topups.exceptions import (
    AutoTopupNotConfiguredError,
    InvalidAutoTopupSettingsError,
)

# Most specific first; the first isinstance match wins.
STATUS_BY_ERROR: tuple[tuple[type[MarketplaceError], int], ...] = (
    (InsufficientCreditsError, status.HTTP_402_PAYMENT_REQUIRED),
    (DuplicateApplicationError, status.HTTP_409_CONFLICT),
    (JobNotFoundError, status.HTTP_404_NOT_FOUND),
    (ApplicationNotFoundError, status.HTTP_404_NOT_FOUND),
    (CreditBalanceNotFoundError, status.HTTP_404_NOT_FOUND),
    (AutoTopupNotConfiguredError, status.HTTP_404_NOT_FOUND),
    (JobUnavailableError, status.HTTP_409_CONFLICT),
    (InvalidStatusTransitionError, status.HTTP_409_CONFLICT),
    (WithdrawalNotAllowedError, status.HTTP_403_FORBIDDEN),
    (UnauthorizedActionError, status.HTTP_403_FORBIDDEN),
    (InvalidCreditAmountError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidAutoTopupSettingsError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: MarketplaceError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def to_http_exception(exc: MarketplaceError) -> HTTPException:
    return HTTPException(
        status_code=status_for(exc),
        detail={"code": exc.code, "message": exc.message, "category": exc.category},
    )
