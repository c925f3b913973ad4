"""Domain records for the credit ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

PURCHASE = "purchase"
USAGE = "usage"
REFUND = "refund"
BONUS = "bonus"
TRIAL = "trial"
SUBSCRIPTION = "subscription"
EXPIRY = "expiry"

TRANSACTION_TYPES = (PURCHASE, USAGE, REFUND, BONUS, TRIAL, SUBSCRIPTION, EXPIRY)
DEBIT_TYPES = frozenset({USAGE, EXPIRY})
# Which running total a credit posting feeds.
CREDIT_TYPE_TOTALS = {
    PURCHASE: "purchased",
    BONUS: "purchased",
    TRIAL: "purchased",
    SUBSCRIPTION: "purchased",
    REFUND: "refunded",
}

TRANSACTION_STATUSES = ("pending", "completed", "failed")


@dataclass(slots=True)
class CreditBalance:
    user_id: str
    current_balance: int
    total_purchased: int
    total_used: int
    total_refunded: int
    last_purchase_at: Optional[datetime] = None
    last_usage_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_consistent(self) -> bool:
        return self.current_balance == self.total_purchased + self.total_refunded - self.total_used


@dataclass(slots=True)
class CreditTransactionRecord:
    id: str
    user_id: str
    transaction_type: str
    credits: int
    status: str
    description: Optional[str]
    reference_id: Optional[str]
    reference_type: Optional[str]
    expires_at: Optional[datetime]
    created_at: datetime

    @property
    def signed_credits(self) -> int:
        return -self.credits if self.transaction_type in DEBIT_TYPES else self.credits


@dataclass(slots=True)
class LedgerPosting:
    """A committed-together pair: the transaction row and the balance after it."""

    transaction: CreditTransactionRecord
    balance: CreditBalance


@dataclass(slots=True)
class TransactionFilter:
    transaction_types: Optional[tuple[str, ...]] = None
    status: Optional[str] = None
    reference_type: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.limit


@dataclass(slots=True)
class TransactionPage:
    items: list[CreditTransactionRecord] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def has_more(self) -> bool:
        return self.total > self.page * self.limit


LOW = "low"
CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class BalanceAlertThresholds:
    low: int = 10
    critical: int = 3

    def crossed(self, previous: int, current: int) -> Optional[str]:
        """Alert level a debit from ``previous`` to ``current`` has just entered, if any."""
        if current <= self.critical < previous:
            return CRITICAL
        if self.critical < current <= self.low < previous:
            return LOW
        return None
