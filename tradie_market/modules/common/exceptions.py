"""Error taxonomy shared by the marketplace credit modules."""

from __future__ import annotations

from typing import Literal

ErrorCategory = Literal["request", "not_found", "forbidden", "retry"]


class MarketplaceError(Exception):
    """Base class for all domain errors raised by the credit workflow.

    ``category`` tells callers how to react: ``request`` errors need a
    different request, ``forbidden`` ones are not allowed for this caller,
    ``retry`` ones may succeed if attempted again.
    """

    code: str = "MARKETPLACE_ERROR"
    category: ErrorCategory = "request"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class UnauthorizedActionError(MarketplaceError):
    """Caller is not allowed to act on this resource."""

    code = "UNAUTHORIZED"
    category = "forbidden"


class TransientStoreError(MarketplaceError):
    """The store could not complete the operation; it is safe to try again."""

    code = "TRANSIENT_STORE_ERROR"
    category = "retry"
