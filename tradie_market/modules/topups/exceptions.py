"""Auto-topup exceptions."""

from __future__ import annotations

from tradie_market.modules.common.exceptions import MarketplaceError


class TopupError(MarketplaceError):
    code = "TOPUP_ERROR"


class InvalidAutoTopupSettingsError(TopupError):
    code = "INVALID_AUTO_TOPUP_SETTINGS"


class AutoTopupNotConfiguredError(TopupError):
    """Auto-topup has not been configured for this user."""

    code = "AUTO_TOPUP_NOT_CONFIGURED"
    category = "not_found"


class PaymentGatewayError(TopupError):
    """The payment gateway declined or could not process the charge."""

    code = "PAYMENT_GATEWAY_ERROR"
    category = "retry"
