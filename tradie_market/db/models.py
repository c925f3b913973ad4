"""SQLAlchemy ORM models."""
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from tradie_market.infrastructure.database.base import Base
from tradie_market.modules.common.time import utcnow

ACTIVE_APPLICATION_STATUSES_SQL = "status IN ('submitted', 'under_review', 'selected')"


def generate_uuid() -> str:
    return str(uuid.uuid4())


class CreditBalance(Base):
    __tablename__ = "credit_balances"
    __table_args__ = (
        CheckConstraint("current_balance >= 0", name="ck_credit_balances_non_negative"),
        CheckConstraint(
            "total_purchased >= 0 AND total_used >= 0 AND total_refunded >= 0",
            name="ck_credit_balances_totals_non_negative",
        ),
    )

    user_id = Column(String(36), primary_key=True)
    current_balance = Column(Integer, nullable=False, default=0)
    total_purchased = Column(Integer, nullable=False, default=0)
    total_used = Column(Integer, nullable=False, default=0)
    total_refunded = Column(Integer, nullable=False, default=0)
    last_purchase_at = Column(DateTime(timezone=True))
    last_usage_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class CreditTransaction(Base):
    __tablename__ = "credit_transactions"
    __table_args__ = (
        CheckConstraint("credits > 0", name="ck_credit_transactions_positive"),
        Index("ix_credit_transactions_reference", "reference_type", "reference_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    transaction_type = Column(String(20), nullable=False, index=True)  # purchase, usage, refund, bonus, trial, subscription, expiry
    credits = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="completed")  # pending, completed, failed
    description = Column(String(255))
    reference_id = Column(String(64))
    reference_type = Column(String(30))
    expires_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class MarketplaceJob(Base):
    __tablename__ = "marketplace_jobs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    client_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    job_type = Column(String(30), nullable=False)
    urgency_level = Column(String(20), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="available")  # available, assigned, expired
    application_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    applications = relationship("JobApplication", back_populates="job")


class JobApplication(Base):
    __tablename__ = "job_applications"
    __table_args__ = (
        Index(
            "uq_job_applications_active_pair",
            "marketplace_job_id",
            "tradie_id",
            unique=True,
            postgresql_where=text(ACTIVE_APPLICATION_STATUSES_SQL),
            sqlite_where=text(ACTIVE_APPLICATION_STATUSES_SQL),
        ),
        CheckConstraint("credits_used >= 0", name="ck_job_applications_credits_used"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    marketplace_job_id = Column(String(36), ForeignKey("marketplace_jobs.id"), nullable=False, index=True)
    tradie_id = Column(String(36), nullable=False, index=True)
    custom_quote_cents = Column(Integer)
    proposed_timeline = Column(Text)
    cover_message = Column(Text)
    status = Column(String(20), nullable=False, default="submitted")
    credits_used = Column(Integer, nullable=False, default=0)
    application_timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    job = relationship("MarketplaceJob", back_populates="applications")
    activities = relationship("ApplicationActivityLog", back_populates="application")


class ApplicationActivityLog(Base):
    __tablename__ = "application_activity_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(String(36), ForeignKey("job_applications.id"), nullable=False, index=True)
    activity_type = Column(String(40), nullable=False)
    event_metadata = Column("metadata", Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    application = relationship("JobApplication", back_populates="activities")


class AutoTopupSetting(Base):
    __tablename__ = "auto_topup_settings"

    user_id = Column(String(36), primary_key=True)
    status = Column(String(30), nullable=False, default="enabled")  # enabled, disabled, processing, disabled_after_failures
    trigger_balance = Column(Integer, nullable=False)
    topup_amount = Column(Integer, nullable=False)
    package_type = Column(String(20), nullable=False)
    payment_method_id = Column(String(100))
    failure_count = Column(Integer, nullable=False, default=0)
    last_failure_reason = Column(String(255))
    last_triggered_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
