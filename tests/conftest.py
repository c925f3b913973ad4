from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from tradie_market.core.config import DatabaseSettings, Settings
from tradie_market.infrastructure.database import build_engine, build_session_factory, init_db
from tradie_market.infrastructure.payments.gateway import PaymentResult
from tradie_market.modules.notifications.models import NotificationEvent
from tradie_market.modules.topups.exceptions import PaymentGatewayError
from tradie_market.services.marketplace import MarketplaceCreditService

CLIENT_ID = "client-1"


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotificationSink:
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def publish(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[NotificationEvent]:
        return [event for event in self.events if event.event_type == event_type]


class FakePaymentGateway:
    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.fail_with: str | None = None
        self.raise_error: Exception | None = None

    async def charge_for_credits(self, *, user_id, package, credits, payment_method_id):
        self.calls.append(
            {
                "user_id": user_id,
                "package_type": package.package_type,
                "credits": credits,
                "payment_method_id": payment_method_id,
            }
        )
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_with:
            raise PaymentGatewayError(self.fail_with)
        return PaymentResult(
            payment_id=f"pay_{len(self.calls)}",
            amount_cents=package.price_cents,
            currency=package.currency,
        )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        database=DatabaseSettings(
            url=f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}",
            retry_backoff_seconds=0.01,
        ),
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def notifier() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest_asyncio.fixture
async def engine(settings):
    engine = build_engine(settings.database)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def marketplace(settings, session_factory, gateway, notifier, clock):
    service = MarketplaceCreditService.from_settings(
        settings,
        session_factory,
        gateway=gateway,
        notifier=notifier,
        clock=clock,
    )
    yield service
    await service.wait_for_background()


@pytest.fixture
def make_job(marketplace):
    async def _make_job(**overrides):
        fields = {
            "client_id": CLIENT_ID,
            "title": "Rewire kitchen",
            "job_type": "electrical",
            "urgency_level": "urgent",
        }
        fields.update(overrides)
        return await marketplace.create_job(**fields)

    return _make_job
