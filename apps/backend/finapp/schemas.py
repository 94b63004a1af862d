from __future__ import annotations

import math
from datetime import date, datetime
from typing import Optional, Literal, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from .models import (
    EntryType,
    Periodicity,
    TemplatePaymentMethod,
    PaymentMethod,
    OccurrenceStatus,
    NotificationType,
    NotificationPriority,
    JobStatus,
)


def _positive_amount(v: float | None) -> float | None:
    if v is None:
        return v
    if not math.isfinite(v):
        raise ValueError("amount must be finite")
    if v <= 0:
        raise ValueError("amount must be positive")
    return round(v, 2)


# ---- Supporting entities ----------------------------------------------------


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: EntryType
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_default: bool = False


class CategoryOut(BaseModel):
    id: int
    user_id: Optional[int]
    name: str
    type: EntryType
    color: Optional[str]
    is_default: bool

    model_config = ConfigDict(from_attributes=True)


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    document_number: Optional[str] = Field(default=None, max_length=32)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=32)


class SupplierOut(BaseModel):
    id: int
    user_id: int
    name: str
    document_number: Optional[str]
    email: Optional[str]
    phone: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class AccountCreate(BaseModel):
    bank_name: str = Field(..., min_length=1, max_length=100)
    account_type: str = Field(default="checking", max_length=30)
    balance: float = 0
    description: Optional[str] = Field(default=None, max_length=255)

    @field_validator("balance")
    def balance_finite(cls, v: float):
        if not math.isfinite(v):
            raise ValueError("balance must be finite")
        return round(v, 2)


class AccountOut(BaseModel):
    id: int
    user_id: int
    bank_name: str
    account_type: str
    balance: float
    description: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class TransactionOut(BaseModel):
    id: int
    user_id: int
    account_id: int
    category_id: Optional[int]
    supplier_id: Optional[int]
    fixed_account_id: Optional[int]
    type: EntryType
    amount: float
    description: str
    payment_method: Optional[PaymentMethod]
    payment_date: date
    date: date

    model_config = ConfigDict(from_attributes=True)


class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    related_type: Optional[str]
    related_id: Optional[int]
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---- Fixed accounts ---------------------------------------------------------


class FixedAccountCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    type: Optional[EntryType] = None
    amount: float
    periodicity: Periodicity
    start_date: date
    category_id: int = Field(..., gt=0)
    supplier_id: Optional[int] = Field(default=None, gt=0)
    account_id: Optional[int] = Field(default=None, gt=0)
    payment_method: Optional[TemplatePaymentMethod] = None
    observations: Optional[str] = None
    reminder_days: Optional[int] = Field(default=None, ge=0, le=30)

    @field_validator("description")
    def strip_description(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("description must not be empty")
        return v

    @field_validator("amount")
    def amount_positive(cls, v: float):
        return _positive_amount(v)


class FixedAccountUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[EntryType] = None
    amount: Optional[float] = None
    periodicity: Optional[Periodicity] = None
    start_date: Optional[date] = None
    category_id: Optional[int] = Field(default=None, gt=0)
    supplier_id: Optional[int] = Field(default=None, gt=0)
    account_id: Optional[int] = Field(default=None, gt=0)
    payment_method: Optional[TemplatePaymentMethod] = None
    observations: Optional[str] = None
    reminder_days: Optional[int] = Field(default=None, ge=0, le=30)

    @field_validator("amount")
    def amount_positive(cls, v: float | None):
        return _positive_amount(v)

    @model_validator(mode="after")
    def reject_null_required(self):
        for key in ("description", "amount", "periodicity", "start_date", "category_id", "reminder_days"):
            if key in self.model_fields_set and getattr(self, key) is None:
                raise ValueError(f"{key} cannot be null")
        return self


class FixedAccountOut(BaseModel):
    id: int
    user_id: int
    description: str
    type: EntryType
    amount: float
    periodicity: Periodicity
    start_date: date
    category_id: int
    supplier_id: Optional[int]
    account_id: Optional[int]
    payment_method: Optional[TemplatePaymentMethod]
    observations: Optional[str]
    is_active: bool
    is_paid: bool
    reminder_days: int
    next_due_date: date
    category: Optional[CategoryOut] = None
    supplier: Optional[SupplierOut] = None

    model_config = ConfigDict(from_attributes=True)


class FixedAccountTransactionOut(BaseModel):
    id: int
    fixed_account_id: int
    user_id: int
    due_date: date
    amount: float
    status: OccurrenceStatus
    payment_date: Optional[date]
    payment_method: Optional[PaymentMethod]
    observations: Optional[str]
    transaction_id: Optional[int]

    model_config = ConfigDict(from_attributes=True)


class FixedAccountCreateOut(BaseModel):
    fixed_account: FixedAccountOut
    first_transaction: FixedAccountTransactionOut


class FixedAccountTransactionDetailOut(FixedAccountTransactionOut):
    fixed_account: Optional[FixedAccountOut] = None
    transaction: Optional[TransactionOut] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class FixedAccountTransactionPage(BaseModel):
    items: list[FixedAccountTransactionDetailOut]
    pagination: Pagination


class FixedAccountTransactionUpdate(BaseModel):
    observations: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None


class FixedAccountPaymentRequest(BaseModel):
    transaction_ids: list[int] = Field(..., min_length=1)
    payment_date: date
    account_id: int = Field(..., gt=0)
    payment_method: Optional[PaymentMethod] = None
    observations: Optional[str] = None

    @field_validator("transaction_ids")
    def unique_ids(cls, v: list[int]):
        if any(i <= 0 for i in v):
            raise ValueError("transaction_ids must be positive integers")
        # keep request order, drop repeats
        return list(dict.fromkeys(v))


class FixedAccountPayRequest(BaseModel):
    payment_date: Optional[date] = None
    account_id: Optional[int] = Field(default=None, gt=0)
    payment_method: Optional[PaymentMethod] = None
    observations: Optional[str] = None


class FixedAccountPaymentResult(BaseModel):
    paid_transactions: list[FixedAccountTransactionOut]
    created_transactions: list[TransactionOut]
    total_amount: float


class CategoryBreakdown(BaseModel):
    count: int = 0
    total_amount: float = 0.0
    color: Optional[str] = None


class SupplierBreakdown(BaseModel):
    count: int = 0
    total_amount: float = 0.0


class FixedAccountStatisticsOut(BaseModel):
    total: int
    total_amount: float
    active: int
    inactive: int
    paid: int
    unpaid: int
    overdue: int
    due_this_month: int
    due_next_month: int
    by_periodicity: dict[Periodicity, int]
    by_category: dict[str, CategoryBreakdown]
    by_supplier: dict[str, SupplierBreakdown]
    by_status: dict[OccurrenceStatus, int]
    total_monthly_value: float
    total_yearly_value: float


# ---- Jobs -------------------------------------------------------------------


class JobRunRequest(BaseModel):
    user_id: Optional[int] = Field(default=None, gt=0)


class JobExecutionOut(BaseModel):
    id: int
    job_name: str
    status: JobStatus
    started_at: datetime
    finished_at: Optional[datetime]
    duration_ms: Optional[int]
    new_transactions: int
    updated_accounts: int
    notifications_created: int
    errors: int
    error_message: Optional[str]
    extra_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class JobHistoryOut(BaseModel):
    executions: list[JobExecutionOut]
    pagination: Pagination


class JobStatsOut(BaseModel):
    period: Literal["day", "week", "month"]
    total_executions: int
    successful_executions: int
    failed_executions: int
    success_rate: float
    average_duration_ms: Optional[float]
    by_job: dict[str, dict[str, int]]


class JobScheduleOut(BaseModel):
    job_name: str
    schedule: str
    description: str


class JobConfigOut(BaseModel):
    jobs: list[JobScheduleOut]
    notification_window_days: int
    notification_dedup_hours: int
    timezone: str
