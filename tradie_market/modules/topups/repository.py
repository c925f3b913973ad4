"""Repository protocol for auto-topup settings."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .models import AutoTopupSettings


class AutoTopupRepository(Protocol):
    async def get(self, user_id: str) -> AutoTopupSettings | None:
        ...

    async def save(
        self,
        user_id: str,
        *,
        status: str,
        trigger_balance: int,
        topup_amount: int,
        package_type: str,
        payment_method_id: str | None,
    ) -> AutoTopupSettings:
        ...

    async def set_status(self, user_id: str, status: str, *, reset_failures: bool = False) -> AutoTopupSettings | None:
        ...

    async def claim(
        self,
        user_id: str,
        *,
        balance: int,
        cooldown_cutoff: datetime,
        at: datetime,
    ) -> AutoTopupSettings | None:
        """Move enabled settings to processing when ``balance`` is at or below the trigger."""
        ...

    async def record_success(self, user_id: str) -> AutoTopupSettings | None:
        ...

    async def record_failure(self, user_id: str, reason: str, *, max_failures: int) -> AutoTopupSettings | None:
        ...
