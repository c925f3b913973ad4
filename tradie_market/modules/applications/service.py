"""Application workflow: submission, status changes, selection and withdrawal."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tradie_market.infrastructure.database.repositories.application_repository import SqlApplicationRepository
from tradie_market.modules.common.exceptions import UnauthorizedActionError
from tradie_market.modules.common.time import utcnow
from tradie_market.modules.credits.models import REFUND
from tradie_market.modules.credits.pricing import CreditCostCalculator
from tradie_market.modules.credits.service import CreditLedgerService
from tradie_market.modules.jobs.service import JobService

from .exceptions import (
    ApplicationNotFoundError,
    DuplicateApplicationError,
    InvalidStatusTransitionError,
    WithdrawalNotAllowedError,
)
from .models import (
    APPLICATION_CREATED,
    APPLICATION_REJECTED,
    APPLICATION_SELECTED,
    APPLICATION_WITHDRAWN,
    OPEN_STATUSES,
    SELECTED,
    STATUS_CHANGED,
    SUBMITTED,
    TERMINAL_STATUSES,
    WITHDRAWN,
    ActivityEntry,
    ApplicationDraft,
    ApplicationPage,
    JobApplication,
    StatusChange,
    SubmittedApplication,
    Withdrawal,
    WithdrawalRequest,
    can_transition,
)
from .repository import ApplicationRepository

REFERENCE_TYPE = "application"


@dataclass(slots=True)
class ApplicationWorkflowService:
    """Application state changes, each run inside the caller's transaction.

    The caller owns the unit of work: a raised error means every write made
    here (including debits and refunds) must be rolled back.
    """

    applications: ApplicationRepository
    jobs: JobService
    ledger: CreditLedgerService
    calculator: CreditCostCalculator
    withdrawal_window: timedelta = timedelta(hours=24)
    clock: Callable[[], datetime] = utcnow

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        *,
        calculator: CreditCostCalculator,
        withdrawal_window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ) -> "ApplicationWorkflowService":
        return cls(
            applications=SqlApplicationRepository(session),
            jobs=JobService.with_session(session, clock),
            ledger=CreditLedgerService.with_session(session, clock),
            calculator=calculator,
            withdrawal_window=withdrawal_window,
            clock=clock,
        )

    async def create(
        self,
        job_id: str,
        tradie_id: str,
        draft: ApplicationDraft | None = None,
    ) -> SubmittedApplication:
        draft = draft or ApplicationDraft()
        # Early exit only; the partial unique index is what actually prevents duplicates.
        if await self.applications.find_active(job_id, tradie_id) is not None:
            raise DuplicateApplicationError()

        job = await self.jobs.require_available(job_id)
        credit_cost = self.calculator.cost(job.job_type, job.urgency_level)

        application_id = str(uuid.uuid4())
        posting = await self.ledger.debit(
            tradie_id,
            credit_cost,
            reference_id=application_id,
            reference_type=REFERENCE_TYPE,
            description=f"Application to job: {job.title}",
        )
        application = await self.applications.create(
            application_id=application_id,
            job_id=job_id,
            tradie_id=tradie_id,
            draft=draft,
            credits_used=credit_cost,
            at=self.clock(),
        )
        await self.jobs.record_application(job_id)
        await self.applications.add_activity(
            application.id,
            APPLICATION_CREATED,
            {
                "tradie_id": tradie_id,
                "marketplace_job_id": job_id,
                "custom_quote_cents": draft.custom_quote_cents,
                "credits_used": credit_cost,
            },
        )
        return SubmittedApplication(application=application, balance=posting.balance)

    async def update_status(
        self,
        application_id: str,
        new_status: str,
        *,
        reason: str | None = None,
        actor_id: str | None = None,
        actor_is_admin: bool = False,
    ) -> StatusChange:
        # Lock order is job, then application, matching create().
        unlocked = await self.get(application_id)
        job = await self.jobs.lock_job(unlocked.marketplace_job_id)
        current = await self._require_locked(application_id)
        if actor_id is not None and not actor_is_admin and actor_id != job.client_id:
            raise UnauthorizedActionError("Only the job's client can change application status")

        # Withdrawal has its own window and refund rules.
        if new_status == WITHDRAWN or not can_transition(current.status, new_status):
            raise InvalidStatusTransitionError(current.status, new_status)

        updated = await self.applications.set_status(application_id, new_status, expected=(current.status,))
        if updated is None:
            raise InvalidStatusTransitionError(current.status, new_status)

        await self.applications.add_activity(
            application_id,
            STATUS_CHANGED,
            {"previous_status": current.status, "new_status": new_status, "reason": reason},
        )

        change = StatusChange(application=updated, previous_status=current.status, client_id=job.client_id)
        if new_status == SELECTED:
            change.rejected = await self._select(updated)
        return change

    async def _select(self, winner: JobApplication) -> list[JobApplication]:
        rejected = list(await self.applications.reject_open_competitors(winner.marketplace_job_id, winner.id))
        for competitor in rejected:
            await self.applications.add_activity(
                competitor.id,
                APPLICATION_REJECTED,
                {"selected_application_id": winner.id, "reason": "Another tradie was selected"},
            )
        await self.jobs.mark_assigned(winner.marketplace_job_id)
        await self.applications.add_activity(
            winner.id,
            APPLICATION_SELECTED,
            {"marketplace_job_id": winner.marketplace_job_id, "rejected_count": len(rejected)},
        )
        return rejected

    async def withdraw(
        self,
        application_id: str,
        tradie_id: str,
        request: WithdrawalRequest | None = None,
    ) -> Withdrawal:
        request = request or WithdrawalRequest()
        application = await self._require_locked(application_id)
        if application.tradie_id != tradie_id:
            raise UnauthorizedActionError("Unauthorized withdrawal attempt")
        if application.status in TERMINAL_STATUSES:
            raise InvalidStatusTransitionError(application.status, WITHDRAWN)
        if application.status != SUBMITTED:
            raise WithdrawalNotAllowedError(f"Applications that are {application.status} cannot be withdrawn")
        if not self.within_withdrawal_window(application):
            raise WithdrawalNotAllowedError(
                f"Withdrawal window of {self.withdrawal_window} has passed for application {application_id}"
            )

        updated = await self.applications.set_status(application_id, WITHDRAWN, expected=(SUBMITTED,))
        if updated is None:
            raise InvalidStatusTransitionError(application.status, WITHDRAWN)

        credits_refunded = 0
        balance = None
        if request.refund_credits and application.credits_used > 0:
            previous = await self.ledger.find_by_reference(REFERENCE_TYPE, application_id, REFUND)
            if previous:
                raise InvalidStatusTransitionError(WITHDRAWN, WITHDRAWN)
            posting = await self.ledger.credit(
                tradie_id,
                application.credits_used,
                REFUND,
                reference_id=application_id,
                reference_type=REFERENCE_TYPE,
                description="Refund for withdrawn application",
            )
            credits_refunded = application.credits_used
            balance = posting.balance

        await self.applications.add_activity(
            application_id,
            APPLICATION_WITHDRAWN,
            {
                "tradie_id": tradie_id,
                "reason": request.reason,
                "refund_credits": request.refund_credits,
                "credits_refunded": credits_refunded,
            },
        )
        return Withdrawal(application=updated, credits_refunded=credits_refunded, balance=balance)

    def within_withdrawal_window(self, application: JobApplication) -> bool:
        return self.clock() - application.application_timestamp <= self.withdrawal_window

    async def get(self, application_id: str) -> JobApplication:
        application = await self.applications.get(application_id)
        if application is None:
            raise ApplicationNotFoundError(f"Application {application_id} not found")
        return application

    async def list_for_job(self, job_id: str, *, open_only: bool = False) -> list[JobApplication]:
        await self.jobs.get_job(job_id)
        rows = await self.applications.list_for_job(job_id)
        if open_only:
            return [row for row in rows if row.status in OPEN_STATUSES]
        return list(rows)

    async def list_for_tradie(
        self,
        tradie_id: str,
        *,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ApplicationPage:
        page = max(page, 1)
        rows, total = await self.applications.list_for_tradie(
            tradie_id,
            status=status,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return ApplicationPage(items=list(rows), total=total, page=page, limit=limit)

    async def timeline(self, application_id: str) -> list[ActivityEntry]:
        await self.get(application_id)
        return list(await self.applications.list_activity(application_id))

    async def _require_locked(self, application_id: str) -> JobApplication:
        application = await self.applications.lock(application_id)
        if application is None:
            raise ApplicationNotFoundError(f"Application {application_id} not found")
        return application
