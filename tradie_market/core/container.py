"""Simple dependency container for wiring core services."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tradie_market.core.config import Settings, get_settings
from tradie_market.infrastructure.database.session import build_engine, build_session_factory
from tradie_market.infrastructure.payments.gateway import HttpPaymentGateway, PaymentGateway
from tradie_market.modules.notifications.sink import LoggingNotificationSink, NotificationSink
from tradie_market.services.marketplace import MarketplaceCreditService


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    gateway: PaymentGateway
    notifier: NotificationSink
    marketplace: MarketplaceCreditService

    async def aclose(self) -> None:
        await self.marketplace.aclose()
        if isinstance(self.gateway, HttpPaymentGateway):
            await self.gateway.aclose()
        await self.engine.dispose()


def build_container(
    settings: Settings,
    *,
    gateway: PaymentGateway | None = None,
    notifier: NotificationSink | None = None,
) -> ApplicationContainer:
    engine = build_engine(settings.database, debug=settings.debug)
    session_factory = build_session_factory(engine)
    gateway = gateway or HttpPaymentGateway(settings.payments)
    notifier = notifier or LoggingNotificationSink()
    marketplace = MarketplaceCreditService.from_settings(
        settings,
        session_factory,
        gateway=gateway,
        notifier=notifier,
    )
    return ApplicationContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        gateway=gateway,
        notifier=notifier,
        marketplace=marketplace,
    )


@lru_cache()
def get_container() -> ApplicationContainer:
    return build_container(get_settings())


__all__ = ["ApplicationContainer", "build_container", "get_container"]
