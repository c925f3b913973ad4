"""Payment gateway adapters."""

from .gateway import HttpPaymentGateway, PaymentGateway, PaymentResult

__all__ = ["HttpPaymentGateway", "PaymentGateway", "PaymentResult"]
