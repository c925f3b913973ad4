"""Credit ledger specific exceptions."""

from __future__ import annotations

from tradie_market.modules.common.exceptions import MarketplaceError


class CreditError(MarketplaceError):
    """Base class for credit ledger errors."""

    code = "CREDIT_ERROR"


class InsufficientCreditsError(CreditError):
    """Raised when a debit would take the balance below zero."""

    code = "INSUFFICIENT_CREDITS"

    def __init__(self, *, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(f"Insufficient credits. Required: {required}, available: {available}.")


class InvalidCreditAmountError(CreditError):
    """Raised for non-positive amounts or unknown transaction types."""

    code = "INVALID_CREDIT_AMOUNT"


class CreditBalanceNotFoundError(CreditError):
    """Raised when the user has never held credits."""

    code = "CREDIT_BALANCE_NOT_FOUND"
    category = "not_found"
