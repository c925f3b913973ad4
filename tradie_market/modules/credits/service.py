"""Credit ledger domain service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tradie_market.infrastructure.database.repositories.credit_repository import SqlCreditRepository
from tradie_market.modules.common.time import utcnow

from .exceptions import InsufficientCreditsError, InvalidCreditAmountError
from .models import (
    CREDIT_TYPE_TOTALS,
    DEBIT_TYPES,
    EXPIRY,
    TRIAL,
    USAGE,
    CreditBalance,
    CreditTransactionRecord,
    LedgerPosting,
    TransactionFilter,
    TransactionPage,
)
from .repository import CreditRepository

logger = logging.getLogger(__name__)


def _require_positive(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidCreditAmountError(f"Credit amount must be a positive integer, got {amount!r}")
    return amount


@dataclass(slots=True)
class CreditLedgerService:
    """Sole writer of credit balances and the transaction log.

    Every method runs inside the caller's transaction; nothing here commits.
    Each balance change is paired with exactly one transaction row.
    """

    repository: CreditRepository
    clock: Callable[[], datetime] = utcnow

    @classmethod
    def with_session(cls, session: AsyncSession, clock: Callable[[], datetime] = utcnow) -> "CreditLedgerService":
        return cls(SqlCreditRepository(session), clock)

    async def get_balance(self, user_id: str) -> Optional[CreditBalance]:
        return await self.repository.get_balance(user_id)

    async def debit(
        self,
        user_id: str,
        amount: int,
        *,
        reference_id: str | None,
        reference_type: str | None,
        description: str | None = None,
        transaction_type: str = USAGE,
    ) -> LedgerPosting:
        _require_positive(amount)
        if transaction_type not in DEBIT_TYPES:
            raise InvalidCreditAmountError(f"{transaction_type!r} is not a debit transaction type")

        locked = await self.repository.lock_balance(user_id)
        available = locked.current_balance if locked else 0
        if available < amount:
            raise InsufficientCreditsError(required=amount, available=available)

        balance = await self.repository.apply_debit(user_id, amount, self.clock())
        if balance is None:
            # Another writer drained the balance between the read and the guarded update.
            current = await self.repository.get_balance(user_id)
            raise InsufficientCreditsError(
                required=amount,
                available=current.current_balance if current else 0,
            )

        transaction = await self.repository.add_transaction(
            user_id=user_id,
            transaction_type=transaction_type,
            credits=amount,
            status="completed",
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
            expires_at=None,
        )
        logger.debug("Debited %s credits from %s (%s)", amount, user_id, transaction_type)
        return LedgerPosting(transaction=transaction, balance=balance)

    async def credit(
        self,
        user_id: str,
        amount: int,
        transaction_type: str,
        *,
        reference_id: str | None = None,
        reference_type: str | None = None,
        description: str | None = None,
        expires_at: datetime | None = None,
    ) -> LedgerPosting:
        _require_positive(amount)
        total = CREDIT_TYPE_TOTALS.get(transaction_type)
        if total is None:
            raise InvalidCreditAmountError(f"{transaction_type!r} is not a credit transaction type")

        balance = await self.repository.apply_credit(user_id, amount, total, self.clock())
        transaction = await self.repository.add_transaction(
            user_id=user_id,
            transaction_type=transaction_type,
            credits=amount,
            status="completed",
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
            expires_at=expires_at,
        )
        logger.debug("Credited %s credits to %s (%s)", amount, user_id, transaction_type)
        return LedgerPosting(transaction=transaction, balance=balance)

    async def grant_trial(self, user_id: str, amount: int) -> Optional[LedgerPosting]:
        """Open a balance seeded with trial credits.

        Returns None when the user already has a balance; trial credits are only
        ever granted together with the balance row.
        """
        _require_positive(amount)
        if not await self.repository.create_balance(user_id):
            return None
        return await self.credit(
            user_id,
            amount,
            TRIAL,
            reference_type="trial",
            description=f"Welcome trial: {amount} credits",
        )

    async def expire(
        self,
        user_id: str,
        amount: int,
        *,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> LedgerPosting:
        return await self.debit(
            user_id,
            amount,
            reference_id=reference_id,
            reference_type="expiry",
            description=description or "Purchased credits expired",
            transaction_type=EXPIRY,
        )

    async def get_transaction_history(self, user_id: str, filters: TransactionFilter | None = None) -> TransactionPage:
        filters = filters or TransactionFilter()
        rows, total = await self.repository.list_transactions(user_id, filters)
        return TransactionPage(items=list(rows), total=total, page=max(filters.page, 1), limit=filters.limit)

    async def get_usage_history(self, user_id: str, filters: TransactionFilter | None = None) -> TransactionPage:
        usage_filters = replace(filters or TransactionFilter(), transaction_types=(USAGE,))
        return await self.get_transaction_history(user_id, usage_filters)

    async def find_by_reference(
        self,
        reference_type: str,
        reference_id: str,
        transaction_type: str | None = None,
    ) -> list[CreditTransactionRecord]:
        rows = await self.repository.find_by_reference(reference_type, reference_id, transaction_type)
        return list(rows)
