import httpx
import pytest

from tradie_market.core.config import PaymentSettings
from tradie_market.infrastructure.payments import HttpPaymentGateway
from tradie_market.modules.topups.exceptions import AutoTopupNotConfiguredError, InvalidAutoTopupSettingsError
from tradie_market.services.marketplace import MarketplaceCreditService

TRADIE_ID = "tradie-1"


async def _configure(marketplace, **overrides):
    fields = {
        "trigger_balance": 5,
        "topup_amount": 20,
        "package_type": "standard",
        "payment_method_id": "pm_card_visa",
    }
    fields.update(overrides)
    return await marketplace.configure_auto_topup(TRADIE_ID, **fields)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"trigger_balance": 60},
        {"trigger_balance": -1},
        {"topup_amount": 2},
        {"topup_amount": 500},
        {"package_type": "gold"},
    ],
)
async def test_invalid_settings_are_rejected(marketplace, overrides):
    with pytest.raises(InvalidAutoTopupSettingsError):
        await _configure(marketplace, **overrides)

    assert await marketplace.get_auto_topup_settings(TRADIE_ID) is None


@pytest.mark.asyncio
async def test_enable_requires_existing_settings(marketplace):
    with pytest.raises(AutoTopupNotConfiguredError):
        await marketplace.enable_auto_topup(TRADIE_ID)


@pytest.mark.asyncio
async def test_debit_below_trigger_buys_more_credits(marketplace, make_job, gateway, notifier):
    await marketplace.purchase_credits(TRADIE_ID, 10)
    await _configure(marketplace)
    job = await make_job()

    await marketplace.create_application(job.id, TRADIE_ID)
    await marketplace.wait_for_background()

    assert gateway.calls == [
        {
            "user_id": TRADIE_ID,
            "package_type": "standard",
            "credits": 20,
            "payment_method_id": "pm_card_visa",
        }
    ]
    balance = await marketplace.get_balance(TRADIE_ID)
    assert balance.current_balance == 24
    assert balance.total_purchased == 30
    assert balance.is_consistent()

    history = await marketplace.get_transaction_history(TRADIE_ID)
    topups = [item for item in history.items if item.reference_type == "auto_topup"]
    assert len(topups) == 1
    assert topups[0].transaction_type == "purchase"
    assert topups[0].reference_id == "pay_1"

    settings = await marketplace.get_auto_topup_settings(TRADIE_ID)
    assert settings.status == "enabled"
    assert settings.last_triggered_at is not None
    assert notifier.of_type("auto_topup_succeeded")[0].payload["balance"] == 24


@pytest.mark.asyncio
async def test_balance_above_trigger_does_nothing(marketplace, make_job, gateway):
    await marketplace.purchase_credits(TRADIE_ID, 50)
    await _configure(marketplace)
    job = await make_job()

    await marketplace.create_application(job.id, TRADIE_ID)
    await marketplace.wait_for_background()

    assert gateway.calls == []
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 44


@pytest.mark.asyncio
async def test_disabled_settings_never_charge(marketplace, gateway):
    await marketplace.purchase_credits(TRADIE_ID, 10)
    await _configure(marketplace, enabled=False)

    outcome = await marketplace.check_auto_topup(TRADIE_ID, 0)

    assert outcome is None
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_cooldown_blocks_back_to_back_charges(marketplace, gateway, clock):
    await marketplace.purchase_credits(TRADIE_ID, 3)
    await _configure(marketplace)

    first = await marketplace.check_auto_topup(TRADIE_ID, 3)
    second = await marketplace.check_auto_topup(TRADIE_ID, 3)
    clock.advance(minutes=61)
    third = await marketplace.check_auto_topup(TRADIE_ID, 3)

    assert first.succeeded
    assert second is None
    assert third.succeeded
    assert len(gateway.calls) == 2
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 43


@pytest.mark.asyncio
async def test_repeated_failures_disable_auto_topup(marketplace, make_job, gateway, notifier, clock):
    await marketplace.purchase_credits(TRADIE_ID, 10)
    await _configure(marketplace)
    gateway.fail_with = "Card declined"
    job = await make_job()

    application = await marketplace.create_application(job.id, TRADIE_ID)
    await marketplace.wait_for_background()
    for _ in range(2):
        clock.advance(minutes=61)
        outcome = await marketplace.check_auto_topup(TRADIE_ID, 4)
        assert not outcome.succeeded
        assert outcome.error == "Card declined"

    settings = await marketplace.get_auto_topup_settings(TRADIE_ID)
    assert settings.status == "disabled_after_failures"
    assert settings.failure_count == 3
    assert settings.last_failure_reason == "Card declined"

    # The debit that caused the trigger stands.
    assert (await marketplace.get_application(application.id)).status == "submitted"
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 4

    clock.advance(minutes=61)
    assert await marketplace.check_auto_topup(TRADIE_ID, 4) is None
    assert len(gateway.calls) == 3

    await marketplace.wait_for_background()
    failures = notifier.of_type("auto_topup_failed")
    assert len(failures) == 3
    assert failures[-1].payload["status"] == "disabled_after_failures"


@pytest.mark.asyncio
async def test_enabling_again_resets_failures(marketplace, gateway):
    await marketplace.purchase_credits(TRADIE_ID, 2)
    await _configure(marketplace)
    gateway.fail_with = "Insufficient funds"
    outcome = await marketplace.check_auto_topup(TRADIE_ID, 2)
    assert outcome.settings.failure_count == 1

    settings = await marketplace.enable_auto_topup(TRADIE_ID)

    assert settings.status == "enabled"
    assert settings.failure_count == 0
    assert settings.last_failure_reason is None


@pytest.mark.asyncio
async def test_disable_stops_triggers(marketplace, gateway):
    await marketplace.purchase_credits(TRADIE_ID, 2)
    await _configure(marketplace)

    settings = await marketplace.disable_auto_topup(TRADIE_ID)
    outcome = await marketplace.check_auto_topup(TRADIE_ID, 2)

    assert settings.status == "disabled"
    assert outcome is None
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_unexpected_gateway_error_counts_as_failure(marketplace, gateway, notifier, clock):
    await marketplace.purchase_credits(TRADIE_ID, 2)
    await _configure(marketplace)
    gateway.raise_error = RuntimeError("gateway bug")

    outcome = await marketplace.check_auto_topup(TRADIE_ID, 2)

    assert not outcome.succeeded
    assert "gateway bug" in outcome.error
    settings = await marketplace.get_auto_topup_settings(TRADIE_ID)
    assert settings.status == "enabled"
    assert settings.failure_count == 1

    # Released from processing, so the next trigger after the cooldown charges again.
    gateway.raise_error = None
    clock.advance(minutes=61)
    retried = await marketplace.check_auto_topup(TRADIE_ID, 2)
    assert retried.succeeded
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 22

    await marketplace.wait_for_background()
    assert len(notifier.of_type("auto_topup_failed")) == 1


@pytest.mark.asyncio
async def test_malformed_gateway_response_eventually_disables(settings, session_factory, notifier, clock):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"payment_id": "p1", "amount_cents": "n/a"})

    http_gateway = HttpPaymentGateway(
        PaymentSettings(gateway_url="https://payments.test/charges"),
        transport=httpx.MockTransport(handler),
    )
    service = MarketplaceCreditService.from_settings(
        settings, session_factory, gateway=http_gateway, notifier=notifier, clock=clock
    )
    await service.purchase_credits(TRADIE_ID, 2)
    await service.configure_auto_topup(
        TRADIE_ID, trigger_balance=5, topup_amount=20, package_type="standard", payment_method_id="pm_card_visa"
    )

    for _ in range(3):
        outcome = await service.check_auto_topup(TRADIE_ID, 2)
        assert not outcome.succeeded
        clock.advance(days=1)

    stored = await service.get_auto_topup_settings(TRADIE_ID)
    assert stored.status == "disabled_after_failures"
    assert stored.failure_count == 3
    assert (await service.get_balance(TRADIE_ID)).current_balance == 2

    await service.wait_for_background()
    await http_gateway.aclose()
