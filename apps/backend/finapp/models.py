from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo
from enum import Enum
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Index,
    Boolean,
    JSON,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.ext.mutable import MutableDict

from .core.config import settings
from .core.database import Base


try:
    LOCAL_ZONE = ZoneInfo(getattr(settings, "TIMEZONE", "America/Sao_Paulo"))
except Exception:
    LOCAL_ZONE = ZoneInfo("America/Sao_Paulo")


def now_local_naive() -> datetime:
    """Return naive datetime normalized to configured local timezone."""
    return datetime.now(LOCAL_ZONE).replace(tzinfo=None)


def today_local() -> date:
    return now_local_naive().date()


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, onupdate=now_local_naive, nullable=False)


class User(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)


class EntryType(str, Enum):
    """Direction of money for categories, templates and ledger entries."""

    INCOME = "income"
    EXPENSE = "expense"


class Periodicity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class TemplatePaymentMethod(str, Enum):
    CARD = "card"
    BOLETO = "boleto"
    AUTOMATIC_DEBIT = "automatic_debit"


class PaymentMethod(str, Enum):
    CARD = "card"
    BOLETO = "boleto"
    AUTOMATIC_DEBIT = "automatic_debit"
    PIX = "pix"
    TRANSFER = "transfer"


class OccurrenceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


PAYABLE_STATUSES = (OccurrenceStatus.PENDING, OccurrenceStatus.OVERDUE)


class Category(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # NULL owner + is_default: shared across users
    user_id: Mapped[int | None] = mapped_column(ForeignKey("user.id"))
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[EntryType] = mapped_column(SAEnum(EntryType, name="entry_type"), nullable=False)
    color: Mapped[str | None] = mapped_column(String(7))
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Supplier(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    document_number: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(String(320))
    phone: Mapped[str | None] = mapped_column(String(32))

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_supplier_name"),
    )


class Account(Base, TimestampMixin):
    """Bank account whose balance is moved by paid occurrences."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[str] = mapped_column(String(30), nullable=False, default="checking")
    balance: Mapped[float] = mapped_column(Numeric(18, 2), default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))


class Transaction(Base, TimestampMixin):
    """Realized ledger entry."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("account.id"), nullable=False)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id"))
    supplier_id: Mapped[int | None] = mapped_column(ForeignKey("supplier.id"))
    fixed_account_id: Mapped[int | None] = mapped_column(ForeignKey("fixedaccount.id", ondelete="SET NULL"))
    type: Mapped[EntryType] = mapped_column(SAEnum(EntryType, name="entry_type"), nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(SAEnum(PaymentMethod, name="payment_method"))
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)

    account: Mapped["Account"] = relationship("Account")

    __table_args__ = (
        Index("ix_transaction_user_date", "user_id", "date"),
    )


class FixedAccount(Base, TimestampMixin):
    """Recurring obligation template.

    ``next_due_date`` is the due date of the next occurrence the engine will
    generate; ``is_paid`` refers to the latest generated occurrence.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[EntryType] = mapped_column(SAEnum(EntryType, name="entry_type"), nullable=False, default=EntryType.EXPENSE)
    amount: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    periodicity: Mapped[Periodicity] = mapped_column(SAEnum(Periodicity, name="periodicity"), nullable=False, default=Periodicity.MONTHLY)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("category.id"), nullable=False)
    supplier_id: Mapped[int | None] = mapped_column(ForeignKey("supplier.id", ondelete="SET NULL"))
    account_id: Mapped[int | None] = mapped_column(ForeignKey("account.id", ondelete="SET NULL"))
    payment_method: Mapped[TemplatePaymentMethod | None] = mapped_column(SAEnum(TemplatePaymentMethod, name="template_payment_method"))
    observations: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reminder_days: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    next_due_date: Mapped[date] = mapped_column(Date, nullable=False)

    category: Mapped["Category"] = relationship("Category")
    supplier: Mapped["Supplier | None"] = relationship("Supplier")
    account: Mapped["Account | None"] = relationship("Account")
    occurrences: Mapped[list["FixedAccountTransaction"]] = relationship(
        "FixedAccountTransaction",
        back_populates="fixed_account",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="FixedAccountTransaction.due_date",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_fixed_account_amount_positive"),
        CheckConstraint("reminder_days BETWEEN 0 AND 30", name="ck_fixed_account_reminder_days"),
        Index("ix_fixed_account_user_due", "user_id", "next_due_date"),
    )

    def is_due_soon(self, today: date) -> bool:
        if not self.is_active or self.is_paid:
            return False
        return self.next_due_date - timedelta(days=self.reminder_days or 0) <= today


class FixedAccountTransaction(Base, TimestampMixin):
    """One due occurrence of a :class:`FixedAccount`."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    fixed_account_id: Mapped[int] = mapped_column(ForeignKey("fixedaccount.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    status: Mapped[OccurrenceStatus] = mapped_column(
        SAEnum(OccurrenceStatus, name="occurrence_status"),
        nullable=False,
        default=OccurrenceStatus.PENDING,
    )
    payment_date: Mapped[date | None] = mapped_column(Date)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(SAEnum(PaymentMethod, name="payment_method"))
    observations: Mapped[str | None] = mapped_column(Text)
    transaction_id: Mapped[int | None] = mapped_column(ForeignKey("transaction.id", ondelete="SET NULL"))

    fixed_account: Mapped["FixedAccount"] = relationship("FixedAccount", back_populates="occurrences")
    transaction: Mapped["Transaction | None"] = relationship("Transaction")

    __table_args__ = (
        UniqueConstraint("fixed_account_id", "due_date", name="uq_fixed_account_due_date"),
        CheckConstraint("amount > 0", name="ck_fixed_account_txn_amount_positive"),
        Index("ix_fixed_account_txn_user_status", "user_id", "status"),
        Index("ix_fixed_account_txn_due_date", "due_date"),
    )

    def is_overdue(self, today: date) -> bool:
        if self.status == OccurrenceStatus.OVERDUE:
            return True
        return self.status == OccurrenceStatus.PENDING and self.due_date < today

    def mark_as_paid(
        self,
        *,
        payment_date: date,
        transaction_id: int,
        payment_method: PaymentMethod | None = None,
        observations: str | None = None,
    ) -> None:
        self.status = OccurrenceStatus.PAID
        self.payment_date = payment_date
        self.payment_method = payment_method
        if observations is not None:
            self.observations = observations
        self.transaction_id = transaction_id


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationType(str, Enum):
    FIXED_ACCOUNT_DUE = "fixed_account_due"
    FIXED_ACCOUNT_DUE_TODAY = "fixed_account_due_today"
    FIXED_ACCOUNT_OVERDUE = "fixed_account_overdue"


class Notification(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[NotificationType] = mapped_column(SAEnum(NotificationType, name="notification_type"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[NotificationPriority] = mapped_column(
        SAEnum(NotificationPriority, name="notification_priority"),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )
    related_type: Mapped[str | None] = mapped_column(String(32))
    related_id: Mapped[int | None] = mapped_column(Integer)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_notification_related", "user_id", "type", "related_type", "related_id"),
    )


class JobStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class JobExecution(Base):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[JobStatus] = mapped_column(SAEnum(JobStatus, name="job_status"), nullable=False, default=JobStatus.RUNNING)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime)
    duration_ms: Mapped[int | None] = mapped_column(Integer)
    new_transactions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_accounts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notifications_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    extra_metadata: Mapped[dict[str, Any]] = mapped_column(MutableDict.as_mutable(JSON), default=dict, nullable=False)

    __table_args__ = (
        Index("ix_job_execution_name_started", "job_name", "started_at"),
    )
