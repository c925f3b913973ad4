"""Auto-topup settings and credit packages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

TOPUP_ENABLED = "enabled"
TOPUP_DISABLED = "disabled"
TOPUP_PROCESSING = "processing"
TOPUP_DISABLED_AFTER_FAILURES = "disabled_after_failures"

TOPUP_STATUSES = (TOPUP_ENABLED, TOPUP_DISABLED, TOPUP_PROCESSING, TOPUP_DISABLED_AFTER_FAILURES)


@dataclass(frozen=True, slots=True)
class CreditPackage:
    package_type: str
    name: str
    credits: int
    bonus_credits: int
    price_cents: int
    currency: str = "AUD"

    @property
    def total_credits(self) -> int:
        return self.credits + self.bonus_credits


CREDIT_PACKAGES: dict[str, CreditPackage] = {
    "starter": CreditPackage("starter", "Starter Pack", 10, 0, 999),
    "standard": CreditPackage("standard", "Standard Pack", 25, 5, 1999),
    "premium": CreditPackage("premium", "Premium Pack", 50, 15, 3499),
    "enterprise": CreditPackage("enterprise", "Enterprise Pack", 100, 30, 5999),
}


@dataclass(slots=True)
class AutoTopupSettings:
    user_id: str
    status: str
    trigger_balance: int
    topup_amount: int
    package_type: str
    failure_count: int = 0
    payment_method_id: Optional[str] = None
    last_failure_reason: Optional[str] = None
    last_triggered_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_enabled(self) -> bool:
        return self.status == TOPUP_ENABLED


@dataclass(slots=True)
class TopupOutcome:
    """Result of one trigger attempt, reported after its own transaction."""

    user_id: str
    succeeded: bool
    credits: int
    payment_id: Optional[str] = None
    error: Optional[str] = None
    settings: Optional[AutoTopupSettings] = None
