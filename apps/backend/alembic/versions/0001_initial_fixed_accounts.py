"""initial schema: users, ledger and fixed accounts

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENTRY_TYPE = ("INCOME", "EXPENSE")
PAYMENT_METHOD = ("CARD", "BOLETO", "AUTOMATIC_DEBIT", "PIX", "TRANSFER")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "category",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", sa.Enum(*ENTRY_TYPE, name="entry_type"), nullable=False),
        sa.Column("color", sa.String(length=7), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ),
    )

    op.create_table(
        "supplier",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("document_number", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ),
        sa.UniqueConstraint("user_id", "name", name="uq_supplier_name"),
    )

    op.create_table(
        "account",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("bank_name", sa.String(length=100), nullable=False),
        sa.Column("account_type", sa.String(length=30), nullable=False),
        sa.Column("balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ),
    )

    op.create_table(
        "fixedaccount",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("type", sa.Enum(*ENTRY_TYPE, name="entry_type"), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column(
            "periodicity",
            sa.Enum("DAILY", "WEEKLY", "MONTHLY", "QUARTERLY", "YEARLY", name="periodicity"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column(
            "payment_method",
            sa.Enum("CARD", "BOLETO", "AUTOMATIC_DEBIT", name="template_payment_method"),
            nullable=True,
        ),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False),
        sa.Column("reminder_days", sa.Integer(), nullable=False),
        sa.Column("next_due_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ),
        sa.ForeignKeyConstraint(["category_id"], ["category.id"], ),
        sa.ForeignKeyConstraint(["supplier_id"], ["supplier.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"], ondelete="SET NULL"),
        sa.CheckConstraint("amount > 0", name="ck_fixed_account_amount_positive"),
        sa.CheckConstraint("reminder_days BETWEEN 0 AND 30", name="ck_fixed_account_reminder_days"),
    )
    op.create_index("ix_fixed_account_user_due", "fixedaccount", ["user_id", "next_due_date"], unique=False)

    op.create_table(
        "transaction",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("fixed_account_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.Enum(*ENTRY_TYPE, name="entry_type"), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("payment_method", sa.Enum(*PAYMENT_METHOD, name="payment_method"), nullable=True),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"], ),
        sa.ForeignKeyConstraint(["category_id"], ["category.id"], ),
        sa.ForeignKeyConstraint(["supplier_id"], ["supplier.id"], ),
        sa.ForeignKeyConstraint(["fixed_account_id"], ["fixedaccount.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_transaction_user_date", "transaction", ["user_id", "date"], unique=False)

    op.create_table(
        "fixedaccounttransaction",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("fixed_account_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "PAID", "OVERDUE", "CANCELLED", name="occurrence_status"),
            nullable=False,
        ),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("payment_method", sa.Enum(*PAYMENT_METHOD, name="payment_method"), nullable=True),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["fixed_account_id"], ["fixedaccount.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["transaction_id"], ["transaction.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("fixed_account_id", "due_date", name="uq_fixed_account_due_date"),
        sa.CheckConstraint("amount > 0", name="ck_fixed_account_txn_amount_positive"),
    )
    op.create_index("ix_fixed_account_txn_user_status", "fixedaccounttransaction", ["user_id", "status"], unique=False)
    op.create_index("ix_fixed_account_txn_due_date", "fixedaccounttransaction", ["due_date"], unique=False)

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "FIXED_ACCOUNT_DUE",
                "FIXED_ACCOUNT_DUE_TODAY",
                "FIXED_ACCOUNT_OVERDUE",
                name="notification_type",
            ),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "priority",
            sa.Enum("LOW", "MEDIUM", "HIGH", "URGENT", name="notification_priority"),
            nullable=False,
        ),
        sa.Column("related_type", sa.String(length=32), nullable=True),
        sa.Column("related_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_notification_related",
        "notification",
        ["user_id", "type", "related_type", "related_id"],
        unique=False,
    )

    op.create_table(
        "jobexecution",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job_name", sa.String(length=50), nullable=False),
        sa.Column("status", sa.Enum("RUNNING", "SUCCESS", "FAILED", name="job_status"), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("new_transactions", sa.Integer(), nullable=False),
        sa.Column("updated_accounts", sa.Integer(), nullable=False),
        sa.Column("notifications_created", sa.Integer(), nullable=False),
        sa.Column("errors", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("extra_metadata", sa.JSON(), nullable=False),
    )
    op.create_index("ix_job_execution_name_started", "jobexecution", ["job_name", "started_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_job_execution_name_started", table_name="jobexecution")
    op.drop_table("jobexecution")
    op.drop_index("ix_notification_related", table_name="notification")
    op.drop_table("notification")
    op.drop_index("ix_fixed_account_txn_due_date", table_name="fixedaccounttransaction")
    op.drop_index("ix_fixed_account_txn_user_status", table_name="fixedaccounttransaction")
    op.drop_table("fixedaccounttransaction")
    op.drop_index("ix_transaction_user_date", table_name="transaction")
    op.drop_table("transaction")
    op.drop_index("ix_fixed_account_user_due", table_name="fixedaccount")
    op.drop_table("fixedaccount")
    op.drop_table("account")
    op.drop_table("supplier")
    op.drop_table("category")
    op.drop_table("user")
