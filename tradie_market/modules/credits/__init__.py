"""Credit ledger exports"""

from .exceptions import (
    CreditBalanceNotFoundError,
    CreditError,
    InsufficientCreditsError,
    InvalidCreditAmountError,
)
from .models import (
    BalanceAlertThresholds,
    CreditBalance,
    CreditTransactionRecord,
    LedgerPosting,
    TransactionFilter,
    TransactionPage,
)
from .pricing import CreditCostCalculator, CreditCostQuote
from .service import CreditLedgerService

__all__ = [
    "BalanceAlertThresholds",
    "CreditBalance",
    "CreditBalanceNotFoundError",
    "CreditCostCalculator",
    "CreditCostQuote",
    "CreditError",
    "CreditLedgerService",
    "CreditTransactionRecord",
    "InsufficientCreditsError",
    "InvalidCreditAmountError",
    "LedgerPosting",
    "TransactionFilter",
    "TransactionPage",
]
