"""Base class for the SQL repositories behind the domain services."""

from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class AsyncRepository(Generic[ModelT]):
    """Holds the caller's session; repositories flush but never commit."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    @property
    def dialect_name(self) -> str:
        bind = self._session.bind
        return bind.dialect.name if bind is not None else "sqlite"

    async def add(self, instance: ModelT) -> ModelT:
        self._session.add(instance)
        await self._session.flush()
        return instance
