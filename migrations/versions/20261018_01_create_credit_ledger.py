"""create credit ledger, marketplace job and application tables

Revision ID: 5c1e7a9d2b40
Revises: 
Create Date: 2026-10-18 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "5c1e7a9d2b40"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_APPLICATION_STATUSES = "status IN ('submitted', 'under_review', 'selected')"


def upgrade() -> None:
    op.create_table(
        "credit_balances",
        sa.Column("user_id", sa.String(length=36), primary_key=True),
        sa.Column("current_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_purchased", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_refunded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_purchase_at", sa.DateTime(timezone=True)),
        sa.Column("last_usage_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("current_balance >= 0", name="ck_credit_balances_non_negative"),
        sa.CheckConstraint(
            "total_purchased >= 0 AND total_used >= 0 AND total_refunded >= 0",
            name="ck_credit_balances_totals_non_negative",
        ),
    )

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("transaction_type", sa.String(length=20), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.Column("description", sa.String(length=255)),
        sa.Column("reference_id", sa.String(length=64)),
        sa.Column("reference_type", sa.String(length=30)),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("credits > 0", name="ck_credit_transactions_positive"),
    )
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"])
    op.create_index("ix_credit_transactions_transaction_type", "credit_transactions", ["transaction_type"])
    op.create_index("ix_credit_transactions_created_at", "credit_transactions", ["created_at"])
    op.create_index("ix_credit_transactions_reference", "credit_transactions", ["reference_type", "reference_id"])

    op.create_table(
        "marketplace_jobs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("job_type", sa.String(length=30), nullable=False),
        sa.Column("urgency_level", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="available"),
        sa.Column("application_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_marketplace_jobs_client_id", "marketplace_jobs", ["client_id"])

    op.create_table(
        "job_applications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "marketplace_job_id",
            sa.String(length=36),
            sa.ForeignKey("marketplace_jobs.id"),
            nullable=False,
        ),
        sa.Column("tradie_id", sa.String(length=36), nullable=False),
        sa.Column("custom_quote_cents", sa.Integer()),
        sa.Column("proposed_timeline", sa.Text()),
        sa.Column("cover_message", sa.Text()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="submitted"),
        sa.Column("credits_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("application_timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("credits_used >= 0", name="ck_job_applications_credits_used"),
    )
    op.create_index("ix_job_applications_marketplace_job_id", "job_applications", ["marketplace_job_id"])
    op.create_index("ix_job_applications_tradie_id", "job_applications", ["tradie_id"])
    op.create_index(
        "uq_job_applications_active_pair",
        "job_applications",
        ["marketplace_job_id", "tradie_id"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_APPLICATION_STATUSES),
        sqlite_where=sa.text(ACTIVE_APPLICATION_STATUSES),
    )

    op.create_table(
        "application_activity_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "application_id",
            sa.String(length=36),
            sa.ForeignKey("job_applications.id"),
            nullable=False,
        ),
        sa.Column("activity_type", sa.String(length=40), nullable=False),
        sa.Column("metadata", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_application_activity_log_application_id", "application_activity_log", ["application_id"])

    op.create_table(
        "auto_topup_settings",
        sa.Column("user_id", sa.String(length=36), primary_key=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="enabled"),
        sa.Column("trigger_balance", sa.Integer(), nullable=False),
        sa.Column("topup_amount", sa.Integer(), nullable=False),
        sa.Column("package_type", sa.String(length=20), nullable=False),
        sa.Column("payment_method_id", sa.String(length=100)),
        sa.Column("failure_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_failure_reason", sa.String(length=255)),
        sa.Column("last_triggered_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table("auto_topup_settings")
    op.drop_index("ix_application_activity_log_application_id", table_name="application_activity_log")
    op.drop_table("application_activity_log")
    op.drop_index("uq_job_applications_active_pair", table_name="job_applications")
    op.drop_index("ix_job_applications_tradie_id", table_name="job_applications")
    op.drop_index("ix_job_applications_marketplace_job_id", table_name="job_applications")
    op.drop_table("job_applications")
    op.drop_index("ix_marketplace_jobs_client_id", table_name="marketplace_jobs")
    op.drop_table("marketplace_jobs")
    op.drop_index("ix_credit_transactions_reference", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_created_at", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_transaction_type", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_user_id", table_name="credit_transactions")
    op.drop_table("credit_transactions")
    op.drop_table("credit_balances")
