"""Marketplace credit facade used by the HTTP layer.

Each public coroutine is one unit of work: it opens a session, runs the
domain services inside a single transaction (retrying transient store
failures) and only then schedules follow-up work such as notifications and
auto-topup. Nothing scheduled here can roll back a committed operation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from datetime import datetime, timedelta
from typing import Any, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tradie_market.core.config import CreditSettings, Settings, TopupSettings
from tradie_market.infrastructure.database.session import run_in_transaction
from tradie_market.infrastructure.payments.gateway import PaymentGateway
from tradie_market.modules.applications.models import (
    REJECTED,
    SELECTED,
    ActivityEntry,
    ApplicationDraft,
    ApplicationPage,
    JobApplication,
    WithdrawalRequest,
)
from tradie_market.modules.applications.service import ApplicationWorkflowService
from tradie_market.modules.common.time import utcnow
from tradie_market.modules.credits.exceptions import CreditBalanceNotFoundError
from tradie_market.modules.credits.models import (
    BONUS,
    CRITICAL,
    PURCHASE,
    BalanceAlertThresholds,
    CreditBalance,
    LedgerPosting,
    TransactionFilter,
    TransactionPage,
)
from tradie_market.modules.credits.pricing import CreditCostCalculator, CreditCostQuote
from tradie_market.modules.credits.service import CreditLedgerService
from tradie_market.modules.jobs.models import MarketplaceJob
from tradie_market.modules.jobs.service import JobService
from tradie_market.modules.notifications.models import (
    APPLICATION_REJECTED,
    APPLICATION_SUBMITTED,
    APPLICATION_WITHDRAWN,
    AUTO_TOPUP_FAILED,
    AUTO_TOPUP_SUCCEEDED,
    CRITICAL_BALANCE,
    LOW_BALANCE,
    TRADIE_SELECTED,
    TRIAL_CREDITS_AWARDED,
    NotificationEvent,
)
from tradie_market.modules.notifications.sink import LoggingNotificationSink, NotificationSink
from tradie_market.modules.topups.exceptions import PaymentGatewayError
from tradie_market.modules.topups.models import (
    CREDIT_PACKAGES,
    TOPUP_DISABLED_AFTER_FAILURES,
    AutoTopupSettings,
    TopupOutcome,
)
from tradie_market.modules.topups.service import AutoTopupService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MarketplaceCreditService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        calculator: CreditCostCalculator,
        gateway: PaymentGateway,
        notifier: NotificationSink | None = None,
        topup_limits: TopupSettings | None = None,
        credit_settings: CreditSettings | None = None,
        withdrawal_window: timedelta = timedelta(hours=24),
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._calculator = calculator
        self._gateway = gateway
        self._notifier = notifier or LoggingNotificationSink()
        self._topup_limits = topup_limits or TopupSettings()
        credit_settings = credit_settings or CreditSettings()
        self._trial_credits = credit_settings.trial_credits
        self._alerts = BalanceAlertThresholds(
            low=credit_settings.low_balance_threshold,
            critical=credit_settings.critical_balance_threshold,
        )
        self._withdrawal_window = withdrawal_window
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._clock = clock
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        gateway: PaymentGateway,
        notifier: NotificationSink | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "MarketplaceCreditService":
        return cls(
            session_factory,
            calculator=CreditCostCalculator.from_settings(settings.pricing),
            gateway=gateway,
            notifier=notifier,
            topup_limits=settings.topup,
            credit_settings=settings.credits,
            withdrawal_window=timedelta(hours=settings.withdrawal_window_hours),
            retry_attempts=settings.database.retry_attempts,
            retry_backoff_seconds=settings.database.retry_backoff_seconds,
            clock=clock,
        )

    @property
    def calculator(self) -> CreditCostCalculator:
        return self._calculator

    # ------------------------------------------------------------------
    # Unit-of-work plumbing
    # ------------------------------------------------------------------
    async def _run(self, label: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        return await run_in_transaction(
            self._session_factory,
            work,
            attempts=self._retry_attempts,
            backoff_seconds=self._retry_backoff_seconds,
            label=label,
        )

    def _workflow(self, session: AsyncSession) -> ApplicationWorkflowService:
        return ApplicationWorkflowService.with_session(
            session,
            calculator=self._calculator,
            withdrawal_window=self._withdrawal_window,
            clock=self._clock,
        )

    def _ledger(self, session: AsyncSession) -> CreditLedgerService:
        return CreditLedgerService.with_session(session, self._clock)

    def _jobs(self, session: AsyncSession) -> JobService:
        return JobService.with_session(session, self._clock)

    def _topups(self, session: AsyncSession) -> AutoTopupService:
        return AutoTopupService.with_session(session, self._topup_limits, self._clock)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    async def create_job(
        self,
        *,
        client_id: str,
        title: str,
        job_type: str,
        urgency_level: str = "medium",
        expires_at: datetime | None = None,
    ) -> MarketplaceJob:
        return await self._run(
            "create_job",
            lambda session: self._jobs(session).create_job(
                client_id=client_id,
                title=title,
                job_type=job_type,
                urgency_level=urgency_level,
                expires_at=expires_at,
            ),
        )

    async def get_job(self, job_id: str) -> MarketplaceJob:
        return await self._run("get_job", lambda session: self._jobs(session).get_job(job_id))

    async def quote_application_cost(self, job_id: str) -> CreditCostQuote:
        job = await self.get_job(job_id)
        return self._calculator.quote(job.job_type, job.urgency_level)

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------
    async def create_application(
        self,
        job_id: str,
        tradie_id: str,
        draft: ApplicationDraft | None = None,
    ) -> JobApplication:
        submitted = await self._run(
            "create_application",
            lambda session: self._workflow(session).create(job_id, tradie_id, draft),
        )
        application = submitted.application
        logger.info(
            "Application %s created for job %s by %s (%s credits)",
            application.id,
            job_id,
            tradie_id,
            application.credits_used,
        )
        self._publish(
            NotificationEvent(
                APPLICATION_SUBMITTED,
                tradie_id,
                {
                    "application_id": application.id,
                    "marketplace_job_id": job_id,
                    "credits_used": application.credits_used,
                    "balance": submitted.balance.current_balance,
                },
            )
        )
        self._after_debit(tradie_id, application.credits_used, submitted.balance.current_balance)
        return application

    async def update_application_status(
        self,
        application_id: str,
        status: str,
        *,
        reason: str | None = None,
        actor_id: str | None = None,
        actor_is_admin: bool = False,
    ) -> JobApplication:
        change = await self._run(
            "update_application_status",
            lambda session: self._workflow(session).update_status(
                application_id,
                status,
                reason=reason,
                actor_id=actor_id,
                actor_is_admin=actor_is_admin,
            ),
        )
        application = change.application
        logger.info(
            "Application %s moved from %s to %s",
            application.id,
            change.previous_status,
            application.status,
        )

        events: list[NotificationEvent] = []
        if application.status == SELECTED:
            logger.info(
                "Job %s assigned to %s; %s competing applications rejected",
                application.marketplace_job_id,
                application.tradie_id,
                len(change.rejected),
            )
            events.append(
                NotificationEvent(
                    TRADIE_SELECTED,
                    application.tradie_id,
                    {"application_id": application.id, "marketplace_job_id": application.marketplace_job_id},
                )
            )
            events.extend(
                NotificationEvent(
                    APPLICATION_REJECTED,
                    competitor.tradie_id,
                    {
                        "application_id": competitor.id,
                        "marketplace_job_id": competitor.marketplace_job_id,
                        "reason": "Another tradie was selected",
                    },
                )
                for competitor in change.rejected
            )
        elif application.status == REJECTED:
            events.append(
                NotificationEvent(
                    APPLICATION_REJECTED,
                    application.tradie_id,
                    {
                        "application_id": application.id,
                        "marketplace_job_id": application.marketplace_job_id,
                        "reason": reason,
                    },
                )
            )
        self._publish(*events)
        return application

    async def withdraw_application(
        self,
        application_id: str,
        tradie_id: str,
        request: WithdrawalRequest | None = None,
    ) -> JobApplication:
        request = request or WithdrawalRequest()
        withdrawal = await self._run(
            "withdraw_application",
            lambda session: self._workflow(session).withdraw(application_id, tradie_id, request),
        )
        logger.info(
            "Application %s withdrawn by %s (%s credits refunded)",
            application_id,
            tradie_id,
            withdrawal.credits_refunded,
        )
        self._publish(
            NotificationEvent(
                APPLICATION_WITHDRAWN,
                tradie_id,
                {
                    "application_id": application_id,
                    "reason": request.reason,
                    "credits_refunded": withdrawal.credits_refunded,
                },
            )
        )
        return withdrawal.application

    async def get_application(self, application_id: str) -> JobApplication:
        return await self._run(
            "get_application",
            lambda session: self._workflow(session).get(application_id),
        )

    async def list_job_applications(self, job_id: str, *, open_only: bool = False) -> list[JobApplication]:
        return await self._run(
            "list_job_applications",
            lambda session: self._workflow(session).list_for_job(job_id, open_only=open_only),
        )

    async def list_tradie_applications(
        self,
        tradie_id: str,
        *,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ApplicationPage:
        return await self._run(
            "list_tradie_applications",
            lambda session: self._workflow(session).list_for_tradie(tradie_id, status=status, page=page, limit=limit),
        )

    async def get_application_timeline(self, application_id: str) -> list[ActivityEntry]:
        return await self._run(
            "get_application_timeline",
            lambda session: self._workflow(session).timeline(application_id),
        )

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------
    async def get_balance(self, user_id: str) -> CreditBalance:
        balance = await self._run("get_balance", lambda session: self._ledger(session).get_balance(user_id))
        if balance is None:
            raise CreditBalanceNotFoundError(f"No credit balance for user {user_id}")
        return balance

    async def get_transaction_history(self, user_id: str, filters: TransactionFilter | None = None) -> TransactionPage:
        return await self._run(
            "get_transaction_history",
            lambda session: self._ledger(session).get_transaction_history(user_id, filters),
        )

    async def get_usage_history(self, user_id: str, filters: TransactionFilter | None = None) -> TransactionPage:
        return await self._run(
            "get_usage_history",
            lambda session: self._ledger(session).get_usage_history(user_id, filters),
        )

    async def purchase_credits(
        self,
        user_id: str,
        credits: int,
        *,
        reference_id: str | None = None,
        description: str | None = None,
        expires_at: datetime | None = None,
    ) -> LedgerPosting:
        posting = await self._run(
            "purchase_credits",
            lambda session: self._ledger(session).credit(
                user_id,
                credits,
                PURCHASE,
                reference_id=reference_id,
                reference_type="payment" if reference_id else None,
                description=description or f"Purchased {credits} credits",
                expires_at=expires_at,
            ),
        )
        logger.info("Credited %s purchased credits to %s", credits, user_id)
        return posting

    async def grant_bonus(self, user_id: str, credits: int, *, description: str | None = None) -> LedgerPosting:
        posting = await self._run(
            "grant_bonus",
            lambda session: self._ledger(session).credit(
                user_id,
                credits,
                BONUS,
                reference_type="bonus",
                description=description or f"Bonus of {credits} credits",
            ),
        )
        logger.info("Granted %s bonus credits to %s", credits, user_id)
        return posting

    async def grant_trial_credits(self, user_id: str) -> Optional[LedgerPosting]:
        """Give a new user their welcome credits; None if they already have a balance."""
        posting = await self._run(
            "grant_trial_credits",
            lambda session: self._ledger(session).grant_trial(user_id, self._trial_credits),
        )
        if posting is None:
            logger.warning("Trial credits not granted to %s: balance already exists", user_id)
            return None
        logger.info("Granted %s trial credits to %s", self._trial_credits, user_id)
        self._publish(
            NotificationEvent(
                TRIAL_CREDITS_AWARDED,
                user_id,
                {"credits": self._trial_credits, "balance": posting.balance.current_balance},
            )
        )
        return posting

    async def expire_credits(
        self,
        user_id: str,
        credits: int,
        *,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> LedgerPosting:
        posting = await self._run(
            "expire_credits",
            lambda session: self._ledger(session).expire(
                user_id,
                credits,
                reference_id=reference_id,
                description=description,
            ),
        )
        logger.info("Expired %s credits for %s", credits, user_id)
        self._after_debit(user_id, credits, posting.balance.current_balance)
        return posting

    # ------------------------------------------------------------------
    # Auto-topup
    # ------------------------------------------------------------------
    async def get_auto_topup_settings(self, user_id: str) -> Optional[AutoTopupSettings]:
        return await self._run(
            "get_auto_topup_settings",
            lambda session: self._topups(session).get_settings(user_id),
        )

    async def configure_auto_topup(
        self,
        user_id: str,
        *,
        trigger_balance: int,
        topup_amount: int,
        package_type: str,
        payment_method_id: str | None = None,
        enabled: bool = True,
    ) -> AutoTopupSettings:
        return await self._run(
            "configure_auto_topup",
            lambda session: self._topups(session).configure(
                user_id,
                trigger_balance=trigger_balance,
                topup_amount=topup_amount,
                package_type=package_type,
                payment_method_id=payment_method_id,
                enabled=enabled,
            ),
        )

    async def enable_auto_topup(self, user_id: str) -> AutoTopupSettings:
        return await self._run("enable_auto_topup", lambda session: self._topups(session).enable(user_id))

    async def disable_auto_topup(self, user_id: str) -> AutoTopupSettings:
        return await self._run("disable_auto_topup", lambda session: self._topups(session).disable(user_id))

    async def check_auto_topup(self, user_id: str, balance: int) -> Optional[TopupOutcome]:
        """Charge for credits if ``balance`` has dropped to the user's trigger.

        Runs after the debit that produced ``balance`` has committed. Gateway
        failures are recorded against the settings and never raised.
        """
        claimed = await self._run(
            "claim_auto_topup",
            lambda session: self._topups(session).claim(user_id, balance),
        )
        if claimed is None:
            return None

        package = CREDIT_PACKAGES[claimed.package_type]
        try:
            payment = await self._gateway.charge_for_credits(
                user_id=user_id,
                package=package,
                credits=claimed.topup_amount,
                payment_method_id=claimed.payment_method_id,
            )
        except PaymentGatewayError as exc:
            logger.warning("Auto-topup charge failed for %s: %s", user_id, exc.message)
            return await self._auto_topup_failed(user_id, exc.message)
        except Exception as exc:
            # The claim moved the settings to processing; it must be released here.
            logger.exception("Payment gateway raised unexpectedly for %s", user_id)
            return await self._auto_topup_failed(user_id, f"Unexpected payment error: {exc}")

        async def complete(session: AsyncSession) -> tuple[LedgerPosting, Optional[AutoTopupSettings]]:
            posting = await self._ledger(session).credit(
                user_id,
                claimed.topup_amount,
                PURCHASE,
                reference_id=payment.payment_id,
                reference_type="auto_topup",
                description=f"Auto-topup ({package.name})",
            )
            return posting, await self._topups(session).record_success(user_id)

        posting, settings = await self._run("complete_auto_topup", complete)
        logger.info(
            "Auto-topup charged %s for %s credits (payment %s)",
            user_id,
            claimed.topup_amount,
            payment.payment_id,
        )
        self._publish(
            NotificationEvent(
                AUTO_TOPUP_SUCCEEDED,
                user_id,
                {
                    "credits": claimed.topup_amount,
                    "payment_id": payment.payment_id,
                    "balance": posting.balance.current_balance,
                },
            )
        )
        return TopupOutcome(
            user_id=user_id,
            succeeded=True,
            credits=claimed.topup_amount,
            payment_id=payment.payment_id,
            settings=settings,
        )

    async def _auto_topup_failed(self, user_id: str, error: str) -> TopupOutcome:
        settings = await self._run(
            "record_auto_topup_failure",
            lambda session: self._topups(session).record_failure(user_id, error),
        )
        if settings is not None and settings.status == TOPUP_DISABLED_AFTER_FAILURES:
            logger.warning(
                "Auto-topup disabled for %s after %s consecutive failures",
                user_id,
                settings.failure_count,
            )
        self._publish(
            NotificationEvent(
                AUTO_TOPUP_FAILED,
                user_id,
                {
                    "error": error,
                    "failure_count": settings.failure_count if settings else None,
                    "status": settings.status if settings else None,
                },
            )
        )
        return TopupOutcome(user_id=user_id, succeeded=False, credits=0, error=error, settings=settings)

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------
    def _after_debit(self, user_id: str, debited: int, balance: int) -> None:
        level = self._alerts.crossed(balance + debited, balance)
        if level is not None:
            threshold = self._alerts.critical if level == CRITICAL else self._alerts.low
            self._publish(
                NotificationEvent(
                    CRITICAL_BALANCE if level == CRITICAL else LOW_BALANCE,
                    user_id,
                    {"balance": balance, "threshold": threshold},
                )
            )
        self._schedule(self.check_auto_topup(user_id, balance))

    def _publish(self, *events: NotificationEvent) -> None:
        if events:
            self._schedule(self._deliver(events))

    async def _deliver(self, events: Iterable[NotificationEvent]) -> None:
        for event in events:
            try:
                await self._notifier.publish(event)
            except Exception:
                logger.warning("Notification sink failed for %s to %s", event.event_type, event.user_id, exc_info=True)

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed: %s", exc, exc_info=exc)

    async def wait_for_background(self) -> None:
        """Wait until every scheduled follow-up (including ones they schedule) has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        await self.wait_for_background()
