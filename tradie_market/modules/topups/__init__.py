"""Auto-topup exports"""

from .exceptions import (
    AutoTopupNotConfiguredError,
    InvalidAutoTopupSettingsError,
    PaymentGatewayError,
    TopupError,
)
from .models import CREDIT_PACKAGES, AutoTopupSettings, CreditPackage, TopupOutcome
from .service import AutoTopupService

__all__ = [
    "AutoTopupNotConfiguredError",
    "AutoTopupService",
    "AutoTopupSettings",
    "CREDIT_PACKAGES",
    "CreditPackage",
    "InvalidAutoTopupSettingsError",
    "PaymentGatewayError",
    "TopupError",
    "TopupOutcome",
]
