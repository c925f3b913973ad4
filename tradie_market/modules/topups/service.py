"""Auto-topup settings service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tradie_market.core.config import TopupSettings
from tradie_market.infrastructure.database.repositories.topup_repository import SqlAutoTopupRepository
from tradie_market.modules.common.time import utcnow

from .exceptions import AutoTopupNotConfiguredError, InvalidAutoTopupSettingsError
from .models import CREDIT_PACKAGES, TOPUP_DISABLED, TOPUP_ENABLED, AutoTopupSettings
from .repository import AutoTopupRepository


@dataclass(slots=True)
class AutoTopupService:
    repository: AutoTopupRepository
    limits: TopupSettings = field(default_factory=TopupSettings)
    clock: Callable[[], datetime] = utcnow

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        limits: TopupSettings,
        clock: Callable[[], datetime] = utcnow,
    ) -> "AutoTopupService":
        return cls(SqlAutoTopupRepository(session), limits, clock)

    async def get_settings(self, user_id: str) -> Optional[AutoTopupSettings]:
        return await self.repository.get(user_id)

    async def configure(
        self,
        user_id: str,
        *,
        trigger_balance: int,
        topup_amount: int,
        package_type: str,
        payment_method_id: str | None = None,
        enabled: bool = True,
    ) -> AutoTopupSettings:
        package = package_type.strip().lower()
        self._validate(trigger_balance, topup_amount, package)
        return await self.repository.save(
            user_id,
            status=TOPUP_ENABLED if enabled else TOPUP_DISABLED,
            trigger_balance=trigger_balance,
            topup_amount=topup_amount,
            package_type=package,
            payment_method_id=payment_method_id,
        )

    async def enable(self, user_id: str) -> AutoTopupSettings:
        settings = await self.repository.set_status(user_id, TOPUP_ENABLED, reset_failures=True)
        if settings is None:
            raise AutoTopupNotConfiguredError()
        return settings

    async def disable(self, user_id: str) -> AutoTopupSettings:
        settings = await self.repository.set_status(user_id, TOPUP_DISABLED)
        if settings is None:
            raise AutoTopupNotConfiguredError()
        return settings

    async def claim(self, user_id: str, balance: int) -> Optional[AutoTopupSettings]:
        """Reserve a trigger for ``user_id`` if their settings call for one.

        Only one caller can move the settings out of ``enabled``, so concurrent
        debits produce at most one charge.
        """
        if not self.limits.enabled:
            return None
        now = self.clock()
        return await self.repository.claim(
            user_id,
            balance=balance,
            cooldown_cutoff=now - timedelta(minutes=self.limits.cooldown_minutes),
            at=now,
        )

    async def record_success(self, user_id: str) -> Optional[AutoTopupSettings]:
        return await self.repository.record_success(user_id)

    async def record_failure(self, user_id: str, reason: str) -> Optional[AutoTopupSettings]:
        return await self.repository.record_failure(
            user_id,
            reason[:255],
            max_failures=self.limits.max_consecutive_failures,
        )

    def _validate(self, trigger_balance: int, topup_amount: int, package_type: str) -> None:
        limits = self.limits
        if not limits.min_trigger_balance <= trigger_balance <= limits.max_trigger_balance:
            raise InvalidAutoTopupSettingsError(
                f"Trigger balance must be between {limits.min_trigger_balance} and {limits.max_trigger_balance}"
            )
        if not limits.min_topup_credits <= topup_amount <= limits.max_topup_credits:
            raise InvalidAutoTopupSettingsError(
                f"Topup amount must be between {limits.min_topup_credits} and {limits.max_topup_credits} credits"
            )
        if package_type not in CREDIT_PACKAGES:
            raise InvalidAutoTopupSettingsError(f"Unknown credit package {package_type!r}")
