import pytest

from tradie_market.modules.applications import (
    InvalidStatusTransitionError,
    WithdrawalNotAllowedError,
    WithdrawalRequest,
)
from tradie_market.modules.common.exceptions import UnauthorizedActionError

CLIENT_ID = "client-1"
TRADIE_ID = "tradie-1"


@pytest.fixture
def submitted(marketplace, make_job):
    async def _submitted():
        await marketplace.purchase_credits(TRADIE_ID, 100)
        job = await make_job()
        return await marketplace.create_application(job.id, TRADIE_ID)

    return _submitted


async def _refunds(marketplace):
    history = await marketplace.get_transaction_history(TRADIE_ID)
    return [item for item in history.items if item.transaction_type == "refund"]


@pytest.mark.asyncio
async def test_withdrawal_refunds_the_application_cost(marketplace, submitted, notifier):
    application = await submitted()
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 94

    withdrawn = await marketplace.withdraw_application(
        application.id, TRADIE_ID, WithdrawalRequest(reason="Booked elsewhere")
    )
    await marketplace.wait_for_background()

    assert withdrawn.status == "withdrawn"
    balance = await marketplace.get_balance(TRADIE_ID)
    assert balance.current_balance == 100
    assert balance.total_refunded == 6
    assert balance.is_consistent()

    refunds = await _refunds(marketplace)
    assert len(refunds) == 1
    assert refunds[0].credits == 6
    assert refunds[0].reference_id == application.id

    timeline = await marketplace.get_application_timeline(application.id)
    assert timeline[-1].activity_type == "APPLICATION_WITHDRAWN"
    assert timeline[-1].metadata["credits_refunded"] == 6
    event = notifier.of_type("application_withdrawn")[0]
    assert event.payload["reason"] == "Booked elsewhere"


@pytest.mark.asyncio
async def test_second_withdrawal_is_rejected_without_another_refund(marketplace, submitted):
    application = await submitted()
    await marketplace.withdraw_application(application.id, TRADIE_ID)

    with pytest.raises(InvalidStatusTransitionError):
        await marketplace.withdraw_application(application.id, TRADIE_ID)

    assert len(await _refunds(marketplace)) == 1
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 100


@pytest.mark.asyncio
async def test_withdrawal_without_refund_keeps_the_debit(marketplace, submitted):
    application = await submitted()

    withdrawn = await marketplace.withdraw_application(
        application.id, TRADIE_ID, WithdrawalRequest(refund_credits=False)
    )

    assert withdrawn.status == "withdrawn"
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 94
    assert await _refunds(marketplace) == []
    timeline = await marketplace.get_application_timeline(application.id)
    assert timeline[-1].metadata["credits_refunded"] == 0


@pytest.mark.asyncio
async def test_only_the_applicant_can_withdraw(marketplace, submitted):
    application = await submitted()

    with pytest.raises(UnauthorizedActionError):
        await marketplace.withdraw_application(application.id, "tradie-2")

    assert (await marketplace.get_application(application.id)).status == "submitted"


@pytest.mark.asyncio
async def test_withdrawal_window_closes_after_a_day(marketplace, submitted, clock):
    application = await submitted()
    clock.advance(hours=25)

    with pytest.raises(WithdrawalNotAllowedError):
        await marketplace.withdraw_application(application.id, TRADIE_ID)

    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 94


@pytest.mark.asyncio
async def test_withdrawal_allowed_at_the_window_edge(marketplace, submitted, clock):
    application = await submitted()
    clock.advance(hours=24)

    withdrawn = await marketplace.withdraw_application(application.id, TRADIE_ID)

    assert withdrawn.status == "withdrawn"


@pytest.mark.asyncio
async def test_application_under_review_cannot_be_withdrawn(marketplace, submitted):
    application = await submitted()
    await marketplace.update_application_status(application.id, "under_review", actor_id=CLIENT_ID)

    with pytest.raises(WithdrawalNotAllowedError):
        await marketplace.withdraw_application(application.id, TRADIE_ID)

    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 94
