"""Shared abstractions used across domain modules."""

from .exceptions import (
    ErrorCategory,
    MarketplaceError,
    TransientStoreError,
    UnauthorizedActionError,
)
from .repository import AsyncRepository

__all__ = [
    "AsyncRepository",
    "ErrorCategory",
    "MarketplaceError",
    "TransientStoreError",
    "UnauthorizedActionError",
]
