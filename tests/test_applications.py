import asyncio
from datetime import timedelta

import pytest

from tradie_market.infrastructure.database.repositories.application_repository import SqlApplicationRepository
from tradie_market.modules.applications import ApplicationDraft, DuplicateApplicationError, WithdrawalRequest
from tradie_market.modules.credits import InsufficientCreditsError
from tradie_market.modules.jobs import JobNotFoundError, JobUnavailableError

TRADIE_ID = "tradie-1"


@pytest.mark.asyncio
async def test_application_debits_cost_and_records_everything(marketplace, make_job, notifier):
    await marketplace.purchase_credits(TRADIE_ID, 100)
    job = await make_job()

    application = await marketplace.create_application(
        job.id,
        TRADIE_ID,
        ApplicationDraft(custom_quote_cents=45000, proposed_timeline="Next week"),
    )
    await marketplace.wait_for_background()

    assert application.status == "submitted"
    assert application.credits_used == 6
    assert application.custom_quote_cents == 45000
    balance = await marketplace.get_balance(TRADIE_ID)
    assert balance.current_balance == 94
    assert balance.is_consistent()

    usage = await marketplace.get_usage_history(TRADIE_ID)
    assert usage.total == 1
    assert usage.items[0].credits == 6
    assert usage.items[0].reference_id == application.id
    assert usage.items[0].reference_type == "application"

    assert (await marketplace.get_job(job.id)).application_count == 1
    timeline = await marketplace.get_application_timeline(application.id)
    assert [entry.activity_type for entry in timeline] == ["APPLICATION_CREATED"]
    assert timeline[0].metadata["credits_used"] == 6
    assert timeline[0].description == "Application submitted"
    assert [event.event_type for event in notifier.events] == ["application_submitted"]


@pytest.mark.asyncio
async def test_quote_and_charge_agree(marketplace, make_job):
    await marketplace.purchase_credits(TRADIE_ID, 20)
    job = await make_job(job_type="plumbing", urgency_level="medium")

    quote = await marketplace.quote_application_cost(job.id)
    application = await marketplace.create_application(job.id, TRADIE_ID)

    assert quote.final_cost == application.credits_used == 4


@pytest.mark.asyncio
async def test_insufficient_balance_leaves_no_trace(marketplace, make_job):
    await marketplace.purchase_credits(TRADIE_ID, 3)
    job = await make_job(job_type="electrical", urgency_level="high")  # costs 5

    with pytest.raises(InsufficientCreditsError):
        await marketplace.create_application(job.id, TRADIE_ID)

    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 3
    assert (await marketplace.list_tradie_applications(TRADIE_ID)).total == 0
    assert (await marketplace.get_job(job.id)).application_count == 0


@pytest.mark.asyncio
async def test_second_application_to_same_job_is_duplicate(marketplace, make_job):
    await marketplace.purchase_credits(TRADIE_ID, 100)
    job = await make_job()
    await marketplace.create_application(job.id, TRADIE_ID)

    with pytest.raises(DuplicateApplicationError):
        await marketplace.create_application(job.id, TRADIE_ID)

    assert (await marketplace.get_usage_history(TRADIE_ID)).total == 1
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 94


@pytest.mark.asyncio
async def test_concurrent_submissions_produce_one_application_and_one_debit(marketplace, make_job):
    await marketplace.purchase_credits(TRADIE_ID, 100)
    job = await make_job()

    results = await asyncio.gather(
        *[marketplace.create_application(job.id, TRADIE_ID) for _ in range(5)],
        return_exceptions=True,
    )

    created = [result for result in results if not isinstance(result, Exception)]
    errors = [result for result in results if isinstance(result, Exception)]
    assert len(created) == 1
    assert len(errors) == 4
    assert all(isinstance(error, DuplicateApplicationError) for error in errors)
    assert (await marketplace.get_usage_history(TRADIE_ID)).total == 1
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 94
    assert (await marketplace.get_job(job.id)).application_count == 1


@pytest.mark.asyncio
async def test_failure_after_debit_rolls_the_debit_back(marketplace, make_job, monkeypatch):
    await marketplace.purchase_credits(TRADIE_ID, 100)
    job = await make_job()

    async def broken_add_activity(self, application_id, activity_type, metadata):
        raise RuntimeError("audit log unavailable")

    monkeypatch.setattr(SqlApplicationRepository, "add_activity", broken_add_activity)

    with pytest.raises(RuntimeError):
        await marketplace.create_application(job.id, TRADIE_ID)

    balance = await marketplace.get_balance(TRADIE_ID)
    assert balance.current_balance == 100
    assert balance.total_used == 0
    assert (await marketplace.get_usage_history(TRADIE_ID)).total == 0
    assert (await marketplace.list_tradie_applications(TRADIE_ID)).total == 0
    assert (await marketplace.get_job(job.id)).application_count == 0


@pytest.mark.asyncio
async def test_unique_index_rejects_duplicate_when_precheck_misses(marketplace, make_job, monkeypatch):
    await marketplace.purchase_credits(TRADIE_ID, 100)
    job = await make_job()
    await marketplace.create_application(job.id, TRADIE_ID)

    async def stale_find_active(self, job_id, tradie_id):
        return None

    monkeypatch.setattr(SqlApplicationRepository, "find_active", stale_find_active)

    with pytest.raises(DuplicateApplicationError):
        await marketplace.create_application(job.id, TRADIE_ID)

    balance = await marketplace.get_balance(TRADIE_ID)
    assert balance.current_balance == 94
    assert balance.is_consistent()
    assert (await marketplace.get_usage_history(TRADIE_ID)).total == 1
    assert (await marketplace.list_tradie_applications(TRADIE_ID)).total == 1
    assert (await marketplace.get_job(job.id)).application_count == 1


@pytest.mark.asyncio
async def test_missing_job_is_reported(marketplace):
    await marketplace.purchase_credits(TRADIE_ID, 10)

    with pytest.raises(JobNotFoundError):
        await marketplace.create_application("no-such-job", TRADIE_ID)


@pytest.mark.asyncio
async def test_expired_job_is_unavailable(marketplace, make_job, clock):
    await marketplace.purchase_credits(TRADIE_ID, 10)
    job = await make_job(expires_at=clock() + timedelta(hours=1))
    clock.advance(hours=2)

    with pytest.raises(JobUnavailableError):
        await marketplace.create_application(job.id, TRADIE_ID)

    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 10


@pytest.mark.asyncio
async def test_tradie_may_reapply_after_withdrawing(marketplace, make_job):
    await marketplace.purchase_credits(TRADIE_ID, 100)
    job = await make_job()
    first = await marketplace.create_application(job.id, TRADIE_ID)
    await marketplace.withdraw_application(first.id, TRADIE_ID, WithdrawalRequest(refund_credits=False))

    second = await marketplace.create_application(job.id, TRADIE_ID)

    assert second.id != first.id
    assert (await marketplace.get_balance(TRADIE_ID)).current_balance == 88
    assert (await marketplace.get_job(job.id)).application_count == 2


@pytest.mark.asyncio
async def test_tradie_application_listing_is_paginated(marketplace, make_job):
    await marketplace.purchase_credits(TRADIE_ID, 100)
    for index in range(3):
        job = await make_job(title=f"Job {index}")
        await marketplace.create_application(job.id, TRADIE_ID)

    page = await marketplace.list_tradie_applications(TRADIE_ID, page=1, limit=2)
    submitted = await marketplace.list_tradie_applications(TRADIE_ID, status="submitted")

    assert page.total == 3
    assert len(page.items) == 2
    assert page.has_more
    assert submitted.total == 3
