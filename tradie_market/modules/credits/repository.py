"""Repository protocol for the credit ledger."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from .models import CreditBalance, CreditTransactionRecord, TransactionFilter


class CreditRepository(Protocol):
    async def get_balance(self, user_id: str) -> CreditBalance | None:
        ...

    async def lock_balance(self, user_id: str) -> CreditBalance | None:
        ...

    async def create_balance(self, user_id: str) -> bool:
        ...

    async def apply_debit(self, user_id: str, amount: int, at: datetime) -> CreditBalance | None:
        ...

    async def apply_credit(self, user_id: str, amount: int, total: str, at: datetime) -> CreditBalance:
        ...

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
        ...

    async def list_transactions(
        self,
        user_id: str,
        filters: TransactionFilter,
    ) -> tuple[Sequence[CreditTransactionRecord], int]:
        ...

    async def find_by_reference(
        self,
        reference_type: str,
        reference_id: str,
        transaction_type: str | None = None,
    ) -> Sequence[CreditTransactionRecord]:
        ...
