"""SQLAlchemy implementation for auto-topup settings"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradie_market.db.models import AutoTopupSetting
from tradie_market.modules.common.repository import AsyncRepository
from tradie_market.modules.common.time import ensure_utc, utcnow
from tradie_market.modules.topups.models import (
    TOPUP_DISABLED_AFTER_FAILURES,
    TOPUP_ENABLED,
    TOPUP_PROCESSING,
    AutoTopupSettings,
)


class SqlAutoTopupRepository(AsyncRepository[AutoTopupSetting]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get(self, user_id: str) -> AutoTopupSettings | None:
        row = await self.session.get(AutoTopupSetting, user_id, populate_existing=True)
        return self._to_domain(row) if row else None

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
        row = await self.session.get(AutoTopupSetting, user_id, with_for_update=True)
        if row is None:
            row = AutoTopupSetting(user_id=user_id, failure_count=0)
            self.session.add(row)
        row.status = status
        row.trigger_balance = trigger_balance
        row.topup_amount = topup_amount
        row.package_type = package_type
        row.payment_method_id = payment_method_id
        if status == TOPUP_ENABLED:
            row.failure_count = 0
            row.last_failure_reason = None
        row.updated_at = utcnow()
        await self.session.flush()
        return self._to_domain(row)

    async def set_status(self, user_id: str, status: str, *, reset_failures: bool = False) -> AutoTopupSettings | None:
        values: dict = {"status": status, "updated_at": utcnow()}
        if reset_failures:
            values["failure_count"] = 0
            values["last_failure_reason"] = None
        return await self._update(update(AutoTopupSetting).where(AutoTopupSetting.user_id == user_id).values(**values))

    async def claim(
        self,
        user_id: str,
        *,
        balance: int,
        cooldown_cutoff: datetime,
        at: datetime,
    ) -> AutoTopupSettings | None:
        stmt = (
            update(AutoTopupSetting)
            .where(AutoTopupSetting.user_id == user_id)
            .where(AutoTopupSetting.status == TOPUP_ENABLED)
            .where(AutoTopupSetting.trigger_balance >= balance)
            .where(
                or_(
                    AutoTopupSetting.last_triggered_at.is_(None),
                    AutoTopupSetting.last_triggered_at <= cooldown_cutoff,
                )
            )
            .values(status=TOPUP_PROCESSING, last_triggered_at=at, updated_at=at)
        )
        return await self._update(stmt)

    async def record_success(self, user_id: str) -> AutoTopupSettings | None:
        stmt = (
            update(AutoTopupSetting)
            .where(AutoTopupSetting.user_id == user_id)
            .values(
                status=case(
                    (AutoTopupSetting.status == TOPUP_PROCESSING, TOPUP_ENABLED),
                    else_=AutoTopupSetting.status,
                ),
                failure_count=0,
                last_failure_reason=None,
                updated_at=utcnow(),
            )
        )
        return await self._update(stmt)

    async def record_failure(self, user_id: str, reason: str, *, max_failures: int) -> AutoTopupSettings | None:
        failures = AutoTopupSetting.failure_count + 1
        stmt = (
            update(AutoTopupSetting)
            .where(AutoTopupSetting.user_id == user_id)
            .values(
                status=case(
                    (failures >= max_failures, TOPUP_DISABLED_AFTER_FAILURES),
                    (AutoTopupSetting.status == TOPUP_PROCESSING, TOPUP_ENABLED),
                    else_=AutoTopupSetting.status,
                ),
                failure_count=failures,
                last_failure_reason=reason,
                updated_at=utcnow(),
            )
        )
        return await self._update(stmt)

    async def _update(self, stmt) -> AutoTopupSettings | None:
        stmt = stmt.execution_options(synchronize_session="fetch", populate_existing=True).returning(AutoTopupSetting)
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        return self._to_domain(row) if row else None

    @staticmethod
    def _to_domain(model: AutoTopupSetting) -> AutoTopupSettings:
        return AutoTopupSettings(
            user_id=model.user_id,
            status=model.status,
            trigger_balance=int(model.trigger_balance),
            topup_amount=int(model.topup_amount),
            package_type=model.package_type,
            failure_count=int(model.failure_count or 0),
            payment_method_id=model.payment_method_id,
            last_failure_reason=model.last_failure_reason,
            last_triggered_at=ensure_utc(model.last_triggered_at),
            updated_at=ensure_utc(model.updated_at),
        )
