"""SQLAlchemy implementation for the credit ledger"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import desc, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tradie_market.db.models import CreditBalance, CreditTransaction
from tradie_market.modules.common.repository import AsyncRepository
from tradie_market.modules.common.time import ensure_utc, utcnow
from tradie_market.modules.credits.models import (
    CreditBalance as CreditBalanceRecord,
    CreditTransactionRecord,
    TransactionFilter,
)


class SqlCreditRepository(AsyncRepository[CreditTransaction]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_balance(self, user_id: str) -> CreditBalanceRecord | None:
        stmt = select(CreditBalance).where(CreditBalance.user_id == user_id)
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        return self._to_balance(row) if row else None

    async def lock_balance(self, user_id: str) -> CreditBalanceRecord | None:
        stmt = (
            select(CreditBalance)
            .where(CreditBalance.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        return self._to_balance(row) if row else None

    async def apply_debit(self, user_id: str, amount: int, at: datetime) -> CreditBalanceRecord | None:
        # The balance guard lives in the WHERE clause so the store, not the
        # caller's earlier read, decides whether the debit fits.
        stmt = (
            update(CreditBalance)
            .where(CreditBalance.user_id == user_id)
            .where(CreditBalance.current_balance >= amount)
            .values(
                current_balance=CreditBalance.current_balance - amount,
                total_used=CreditBalance.total_used + amount,
                last_usage_at=at,
                updated_at=at,
            )
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(CreditBalance)
        )
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        return self._to_balance(row) if row else None

    async def apply_credit(self, user_id: str, amount: int, total: str, at: datetime) -> CreditBalanceRecord:
        await self.create_balance(user_id)
        values = {
            "current_balance": CreditBalance.current_balance + amount,
            "updated_at": at,
        }
        if total == "refunded":
            values["total_refunded"] = CreditBalance.total_refunded + amount
        else:
            values["total_purchased"] = CreditBalance.total_purchased + amount
            values["last_purchase_at"] = at
        stmt = (
            update(CreditBalance)
            .where(CreditBalance.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(CreditBalance)
        )
        result = await self.session.execute(stmt)
        return self._to_balance(result.scalars().one())

    async def add_transaction(
        self,
        *,
        user_id: str,
        transaction_type: str,
        credits: int,
        status: str,
        description: str | None,
        reference_id: str | None,
        reference_type: str | None,
        expires_at: datetime | None,
    ) -> CreditTransactionRecord:
        tx = CreditTransaction(
            user_id=user_id,
            transaction_type=transaction_type,
            credits=credits,
            status=status,
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
            expires_at=expires_at,
        )
        await self.add(tx)
        return self._to_transaction(tx)

    async def list_transactions(
        self,
        user_id: str,
        filters: TransactionFilter,
    ) -> tuple[Sequence[CreditTransactionRecord], int]:
        conditions = [CreditTransaction.user_id == user_id]
        if filters.transaction_types:
            conditions.append(CreditTransaction.transaction_type.in_(filters.transaction_types))
        if filters.status and filters.status != "all":
            conditions.append(CreditTransaction.status == filters.status)
        if filters.reference_type:
            conditions.append(CreditTransaction.reference_type == filters.reference_type)
        if filters.date_from is not None:
            conditions.append(CreditTransaction.created_at >= ensure_utc(filters.date_from))
        if filters.date_to is not None:
            conditions.append(CreditTransaction.created_at <= ensure_utc(filters.date_to))

        count_stmt = select(func.count()).select_from(CreditTransaction).where(*conditions)
        total = int((await self.session.execute(count_stmt)).scalar() or 0)

        stmt = (
            select(CreditTransaction)
            .where(*conditions)
            .order_by(desc(CreditTransaction.created_at), desc(CreditTransaction.id))
            .offset(filters.offset)
            .limit(filters.limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_transaction(row) for row in result.scalars().all()], total

    async def find_by_reference(
        self,
        reference_type: str,
        reference_id: str,
        transaction_type: str | None = None,
    ) -> Sequence[CreditTransactionRecord]:
        stmt = select(CreditTransaction).where(
            CreditTransaction.reference_type == reference_type,
            CreditTransaction.reference_id == reference_id,
        )
        if transaction_type:
            stmt = stmt.where(CreditTransaction.transaction_type == transaction_type)
        result = await self.session.execute(stmt.order_by(CreditTransaction.created_at))
        return [self._to_transaction(row) for row in result.scalars().all()]

    async def create_balance(self, user_id: str) -> bool:
        """Insert an empty balance row; False when the user already has one."""
        insert = pg_insert if self.dialect_name == "postgresql" else sqlite_insert
        now = utcnow()
        stmt = (
            insert(CreditBalance)
            .values(
                user_id=user_id,
                current_balance=0,
                total_purchased=0,
                total_used=0,
                total_refunded=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[CreditBalance.user_id])
            .returning(CreditBalance.user_id)
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    @staticmethod
    def _to_balance(model: CreditBalance) -> CreditBalanceRecord:
        return CreditBalanceRecord(
            user_id=model.user_id,
            current_balance=int(model.current_balance or 0),
            total_purchased=int(model.total_purchased or 0),
            total_used=int(model.total_used or 0),
            total_refunded=int(model.total_refunded or 0),
            last_purchase_at=ensure_utc(model.last_purchase_at),
            last_usage_at=ensure_utc(model.last_usage_at),
            updated_at=ensure_utc(model.updated_at),
        )

    @staticmethod
    def _to_transaction(model: CreditTransaction) -> CreditTransactionRecord:
        return CreditTransactionRecord(
            id=model.id,
            user_id=model.user_id,
            transaction_type=model.transaction_type,
            credits=int(model.credits),
            status=model.status,
            description=model.description,
            reference_id=model.reference_id,
            reference_type=model.reference_type,
            expires_at=ensure_utc(model.expires_at),
            created_at=ensure_utc(model.created_at),
        )
