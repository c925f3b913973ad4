"""Marketplace job exports"""

from .exceptions import JobError, JobNotFoundError, JobUnavailableError
from .models import MarketplaceJob
from .service import JobService

__all__ = [
    "JobError",
    "JobNotFoundError",
    "JobService",
    "JobUnavailableError",
    "MarketplaceJob",
]
