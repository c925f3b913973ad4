from .marketplace import MarketplaceCreditService

__all__ = [
    "MarketplaceCreditService",
]
