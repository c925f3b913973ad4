"""Marketplace job exceptions."""

from __future__ import annotations

from tradie_market.modules.common.exceptions import MarketplaceError


class JobError(MarketplaceError):
    code = "JOB_ERROR"


class JobNotFoundError(JobError):
    """Job not found."""

    code = "JOB_NOT_FOUND"
    category = "not_found"


class JobUnavailableError(JobError):
    """Job is no longer accepting applications."""

    code = "JOB_UNAVAILABLE"
