"""
Fixed account recurrence engine.

Responsibilities:
- template CRUD with reference validation
- due occurrence generation (``check_overdue_fixed_accounts``)
- transactional payment of occurrences against a bank account
- statistics and reminder counting

Transaction boundaries:
- generation commits per template, so one broken template never blocks the rest
- a payment call is a single all-or-nothing database transaction
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from finapp import models
from finapp.core.config import settings
from finapp.core.errors import AppError, InsufficientBalanceError, NotFoundError, ValidationError
from finapp.services.periodicity import iter_due_dates, monthly_equivalent, next_due_date, yearly_equivalent
from finapp.services.transaction_service import TransactionBalanceService


logger = logging.getLogger(__name__)

_TRANSACTION_UPDATABLE_FIELDS = ("observations", "payment_method")


class FixedAccountService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.balance_service = TransactionBalanceService(db)

    # ---- Reference lookups -------------------------------------------------
    def _get_category(self, user_id: int, category_id: int) -> models.Category:
        category = (
            self.db.query(models.Category)
            .filter(
                models.Category.id == category_id,
                or_(models.Category.user_id == user_id, models.Category.is_default.is_(True)),
            )
            .first()
        )
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _get_supplier(self, user_id: int, supplier_id: int) -> models.Supplier:
        supplier = (
            self.db.query(models.Supplier)
            .filter(models.Supplier.id == supplier_id, models.Supplier.user_id == user_id)
            .first()
        )
        if supplier is None:
            raise NotFoundError("Supplier not found")
        return supplier

    def _get_account(self, user_id: int, account_id: int) -> models.Account:
        account = (
            self.db.query(models.Account)
            .filter(models.Account.id == account_id, models.Account.user_id == user_id)
            .first()
        )
        if account is None:
            raise NotFoundError("Bank account not found")
        return account

    def _resolve_type(self, category: models.Category, requested: Optional[models.EntryType]) -> models.EntryType:
        if requested is not None and category.type != requested:
            raise ValidationError(f"Category must be of type {requested.value}")
        return category.type

    # ---- Templates ---------------------------------------------------------
    def create_fixed_account(
        self, payload: dict[str, Any], *, user_id: int
    ) -> tuple[models.FixedAccount, models.FixedAccountTransaction]:
        """Create a template and its first occurrence at ``start_date``."""
        data = dict(payload)
        if data.get("reminder_days") is None:
            data["reminder_days"] = settings.DEFAULT_REMINDER_DAYS
        try:
            category = self._get_category(user_id, data["category_id"])
            data["type"] = self._resolve_type(category, data.get("type"))
            if data.get("supplier_id"):
                self._get_supplier(user_id, data["supplier_id"])
            if data.get("account_id"):
                self._get_account(user_id, data["account_id"])

            start = data["start_date"]
            row = models.FixedAccount(
                **data,
                user_id=user_id,
                next_due_date=next_due_date(start, data["periodicity"], anchor_day=start.day),
            )
            self.db.add(row)
            self.db.flush()
            first = models.FixedAccountTransaction(
                fixed_account_id=row.id,
                user_id=user_id,
                due_date=start,
                amount=row.amount,
                status=models.OccurrenceStatus.PENDING,
            )
            self.db.add(first)
            self.db.commit()
        except AppError as exc:
            self.db.rollback()
            logger.warning("Fixed account creation rejected for user %s: %s", user_id, exc.message)
            raise
        except Exception:
            self.db.rollback()
            logger.exception("Failed to create fixed account for user %s", user_id)
            raise

        self.db.refresh(row)
        self.db.refresh(first)
        logger.info(
            "Fixed account %s created (first occurrence %s, type=%s, amount=%.2f)",
            row.id,
            first.id,
            row.type.value,
            float(row.amount),
        )
        return row, first

    def get_all(self, *, user_id: int) -> list[models.FixedAccount]:
        return (
            self.db.query(models.FixedAccount)
            .options(selectinload(models.FixedAccount.category), selectinload(models.FixedAccount.supplier))
            .filter(models.FixedAccount.user_id == user_id)
            .order_by(models.FixedAccount.created_at.desc(), models.FixedAccount.id.desc())
            .all()
        )

    def get_by_id(self, user_id: int, fixed_account_id: int) -> models.FixedAccount:
        row = (
            self.db.query(models.FixedAccount)
            .filter(models.FixedAccount.id == fixed_account_id, models.FixedAccount.user_id == user_id)
            .first()
        )
        if row is None:
            raise NotFoundError("Fixed account not found")
        return row

    def update(self, row: models.FixedAccount, patch: dict[str, Any]) -> models.FixedAccount:
        if not patch:
            return row
        user_id = row.user_id
        fixed_account_id = row.id
        try:
            if patch.get("supplier_id"):
                self._get_supplier(user_id, patch["supplier_id"])
            if patch.get("account_id"):
                self._get_account(user_id, patch["account_id"])
            if "category_id" in patch or "type" in patch:
                category = self._get_category(user_id, patch.get("category_id") or row.category_id)
                patch["type"] = self._resolve_type(category, patch.get("type"))

            reschedule = any(
                key in patch and patch[key] != getattr(row, key) for key in ("start_date", "periodicity")
            )
            for key, value in patch.items():
                setattr(row, key, value)
            if reschedule:
                row.next_due_date = self._first_free_due_date(row, row.start_date)
            self.db.commit()
        except AppError:
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            logger.exception("Failed to update fixed account %s", fixed_account_id)
            raise
        self.db.refresh(row)
        logger.info("Fixed account %s updated (%s)", row.id, ", ".join(sorted(patch)))
        return row

    def toggle(self, row: models.FixedAccount) -> models.FixedAccount:
        row.is_active = not row.is_active
        self.db.commit()
        self.db.refresh(row)
        logger.info("Fixed account %s is now %s", row.id, "active" if row.is_active else "inactive")
        return row

    def delete(self, row: models.FixedAccount) -> None:
        fixed_account_id = row.id
        # Ledger history survives the template
        self.db.query(models.Transaction).filter(models.Transaction.fixed_account_id == fixed_account_id).update(
            {models.Transaction.fixed_account_id: None}, synchronize_session=False
        )
        self.db.query(models.FixedAccountTransaction).filter(
            models.FixedAccountTransaction.fixed_account_id == fixed_account_id
        ).delete(synchronize_session="fetch")
        self.db.delete(row)
        self.db.commit()
        logger.info("Fixed account %s deleted", fixed_account_id)

    # ---- Generation --------------------------------------------------------
    def _existing_due_dates(self, fixed_account_id: int) -> set[date]:
        rows = (
            self.db.query(models.FixedAccountTransaction.due_date)
            .filter(models.FixedAccountTransaction.fixed_account_id == fixed_account_id)
            .all()
        )
        return {r[0] for r in rows}

    def _first_free_due_date(self, row: models.FixedAccount, start: date) -> date:
        taken = self._existing_due_dates(row.id)
        # len(taken) + 1 distinct dates always include a free one
        schedule = iter_due_dates(start, row.periodicity, anchor_day=row.start_date.day, limit=len(taken) + 1)
        return next(d for d in schedule if d not in taken)

    def _generate_occurrence(self, row: models.FixedAccount) -> models.FixedAccountTransaction:
        """Create the occurrence at ``next_due_date`` and advance the template to the next free due date."""
        due = row.next_due_date
        occurrence = models.FixedAccountTransaction(
            fixed_account_id=row.id,
            user_id=row.user_id,
            due_date=due,
            amount=row.amount,
            status=models.OccurrenceStatus.PENDING,
        )
        self.db.add(occurrence)
        self.db.flush()
        row.next_due_date = self._first_free_due_date(
            row, next_due_date(due, row.periodicity, anchor_day=row.start_date.day)
        )
        row.is_paid = False
        self.db.flush()
        return occurrence

    def mark_overdue_transactions(self, *, user_id: Optional[int] = None, today: Optional[date] = None) -> int:
        """Flip pending occurrences whose due date has passed to ``overdue``."""
        today = today or models.today_local()
        q = self.db.query(models.FixedAccountTransaction).filter(
            models.FixedAccountTransaction.status == models.OccurrenceStatus.PENDING,
            models.FixedAccountTransaction.due_date < today,
        )
        if user_id is not None:
            q = q.filter(models.FixedAccountTransaction.user_id == user_id)
        count = q.update({models.FixedAccountTransaction.status: models.OccurrenceStatus.OVERDUE}, synchronize_session="fetch")
        self.db.commit()
        if count:
            logger.info("%s fixed account occurrence(s) marked overdue", count)
        return count

    def check_overdue_fixed_accounts(
        self, user_id: Optional[int] = None, *, today: Optional[date] = None
    ) -> dict[str, int]:
        """Generate the next occurrence of every active template that has come due.

        Each template is committed on its own; failures are rolled back,
        logged and counted without stopping the run.
        """
        today = today or models.today_local()
        marked = self.mark_overdue_transactions(user_id=user_id, today=today)

        q = self.db.query(models.FixedAccount.id).filter(
            models.FixedAccount.is_active.is_(True),
            models.FixedAccount.next_due_date <= today,
        )
        if user_id is not None:
            q = q.filter(models.FixedAccount.user_id == user_id)
        due_ids = [r[0] for r in q.order_by(models.FixedAccount.id).all()]

        new_transactions = 0
        updated_accounts = 0
        skipped = 0
        errors = 0
        for fixed_account_id in due_ids:
            try:
                row = self.db.get(models.FixedAccount, fixed_account_id)
                due = row.next_due_date
                exists = (
                    self.db.query(models.FixedAccountTransaction.id)
                    .filter(
                        models.FixedAccountTransaction.fixed_account_id == row.id,
                        models.FixedAccountTransaction.due_date == due,
                    )
                    .first()
                )
                if exists:
                    row.next_due_date = self._first_free_due_date(row, due)
                    self.db.commit()
                    skipped += 1
                    logger.warning(
                        "Occurrence already exists for fixed account %s on %s, next due moved to %s",
                        fixed_account_id,
                        due,
                        row.next_due_date,
                    )
                    continue
                occurrence = self._generate_occurrence(row)
                self.db.commit()
                new_transactions += 1
                updated_accounts += 1
                logger.info(
                    "Occurrence %s created for fixed account %s (due %s, next due %s)",
                    occurrence.id,
                    fixed_account_id,
                    due,
                    row.next_due_date,
                )
            except Exception:
                self.db.rollback()
                errors += 1
                logger.exception("Failed to process fixed account %s", fixed_account_id)

        return {
            "processed": len(due_ids),
            "new_transactions": new_transactions,
            "updated_accounts": updated_accounts,
            "skipped": skipped,
            "errors": errors,
            "marked_overdue": marked,
        }

    # ---- Payments ----------------------------------------------------------
    def _is_current_occurrence(self, occurrence: models.FixedAccountTransaction) -> bool:
        row = occurrence.fixed_account
        if occurrence.due_date == row.next_due_date:
            return True
        latest = (
            self.db.query(func.max(models.FixedAccountTransaction.due_date))
            .filter(models.FixedAccountTransaction.fixed_account_id == row.id)
            .scalar()
        )
        return latest is not None and occurrence.due_date >= latest

    def _apply_payment(
        self,
        *,
        user_id: int,
        transaction_ids: list[int],
        payment_date: date,
        account_id: int,
        payment_method: Optional[models.PaymentMethod] = None,
        observations: Optional[str] = None,
    ) -> dict[str, Any]:
        """Pay occurrences inside the caller's database transaction (no commit)."""
        if not transaction_ids:
            raise ValidationError("transaction_ids is required")
        # a repeated id must not pay the same occurrence twice
        transaction_ids = list(dict.fromkeys(transaction_ids))
        account = self._get_account(user_id, account_id)

        rows = (
            self.db.query(models.FixedAccountTransaction)
            .options(selectinload(models.FixedAccountTransaction.fixed_account))
            .filter(
                models.FixedAccountTransaction.id.in_(transaction_ids),
                models.FixedAccountTransaction.user_id == user_id,
            )
            .all()
        )
        by_id = {r.id: r for r in rows}
        missing = [i for i in transaction_ids if i not in by_id]
        if missing:
            raise ValidationError("Fixed account transaction not found", errors=missing)
        not_payable = [r.id for r in rows if r.status not in models.PAYABLE_STATUSES]
        if not_payable:
            raise ValidationError("Fixed account transaction is not pending or overdue", errors=sorted(not_payable))

        occurrences = [by_id[i] for i in transaction_ids]
        total_amount = round(
            sum(float(o.amount) for o in occurrences if o.fixed_account.type == models.EntryType.EXPENSE),
            2,
        )
        if total_amount > 0 and float(account.balance or 0) < total_amount:
            raise InsufficientBalanceError(
                "Insufficient balance in bank account",
                errors=[{"balance": float(account.balance or 0), "required": total_amount}],
            )

        paid: list[models.FixedAccountTransaction] = []
        created: list[models.Transaction] = []
        for occurrence in occurrences:
            row = occurrence.fixed_account
            ledger = self.balance_service.create_from_fixed_account(
                row,
                account_id=account.id,
                amount=occurrence.amount,
                payment_date=payment_date,
                payment_method=payment_method,
            )
            self.balance_service.apply_balance(account.id, occurrence.amount, row.type)
            occurrence.mark_as_paid(
                payment_date=payment_date,
                transaction_id=ledger.id,
                payment_method=ledger.payment_method,
                observations=observations,
            )
            if self._is_current_occurrence(occurrence):
                row.is_paid = True
            paid.append(occurrence)
            created.append(ledger)
        self.db.flush()
        return {"paid_transactions": paid, "created_transactions": created, "total_amount": total_amount}

    def pay_fixed_account_transactions(
        self,
        *,
        user_id: int,
        transaction_ids: list[int],
        payment_date: date,
        account_id: int,
        payment_method: Optional[models.PaymentMethod] = None,
        observations: Optional[str] = None,
    ) -> dict[str, Any]:
        """Pay a batch of occurrences; all of them or none."""
        try:
            result = self._apply_payment(
                user_id=user_id,
                transaction_ids=transaction_ids,
                payment_date=payment_date,
                account_id=account_id,
                payment_method=payment_method,
                observations=observations,
            )
            self.db.commit()
        except AppError as exc:
            self.db.rollback()
            logger.warning("Payment rejected for user %s (ids=%s): %s", user_id, transaction_ids, exc.message)
            raise
        except Exception:
            self.db.rollback()
            logger.exception("Payment failed for user %s (ids=%s)", user_id, transaction_ids)
            raise

        logger.info(
            "Paid %s fixed account occurrence(s) from account %s (expense total %.2f)",
            len(result["paid_transactions"]),
            account_id,
            result["total_amount"],
        )
        return result

    def pay_fixed_account(
        self,
        row: models.FixedAccount,
        *,
        payment_date: Optional[date] = None,
        account_id: Optional[int] = None,
        payment_method: Optional[models.PaymentMethod] = None,
        observations: Optional[str] = None,
        today: Optional[date] = None,
    ) -> dict[str, Any]:
        """Pay the template's oldest unresolved occurrence, generating it when none is open."""
        if not row.is_active:
            raise ValidationError("Fixed account is inactive")
        user_id = row.user_id
        payment_date = payment_date or today or models.today_local()
        if account_id is None:
            account_id = row.account_id
        if account_id is None:
            first = (
                self.db.query(models.Account.id)
                .filter(models.Account.user_id == user_id)
                .order_by(models.Account.id)
                .first()
            )
            if first is None:
                raise ValidationError("A bank account is required to pay a fixed account")
            account_id = first[0]

        try:
            occurrence = (
                self.db.query(models.FixedAccountTransaction)
                .filter(
                    models.FixedAccountTransaction.fixed_account_id == row.id,
                    models.FixedAccountTransaction.status.in_(models.PAYABLE_STATUSES),
                )
                .order_by(models.FixedAccountTransaction.due_date)
                .first()
            )
            if occurrence is None:
                row.next_due_date = self._first_free_due_date(row, row.next_due_date)
                occurrence = self._generate_occurrence(row)
            result = self._apply_payment(
                user_id=user_id,
                transaction_ids=[occurrence.id],
                payment_date=payment_date,
                account_id=account_id,
                payment_method=payment_method,
                observations=observations,
            )
            self.db.commit()
        except AppError as exc:
            self.db.rollback()
            logger.warning("Payment of fixed account %s rejected: %s", row.id, exc.message)
            raise
        except Exception:
            self.db.rollback()
            logger.exception("Payment of fixed account %s failed", row.id)
            raise

        logger.info("Fixed account %s paid (occurrence due %s)", row.id, occurrence.due_date)
        return result

    # ---- Occurrences -------------------------------------------------------
    def list_fixed_account_transactions(
        self,
        *,
        user_id: int,
        status: Optional[models.OccurrenceStatus] = None,
        category_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        due_date_from: Optional[date] = None,
        due_date_to: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[models.FixedAccountTransaction], dict[str, int]]:
        q = (
            self.db.query(models.FixedAccountTransaction)
            .join(models.FixedAccount, models.FixedAccountTransaction.fixed_account_id == models.FixedAccount.id)
            .filter(models.FixedAccountTransaction.user_id == user_id)
        )
        if status is not None:
            q = q.filter(models.FixedAccountTransaction.status == status)
        if category_id is not None:
            q = q.filter(models.FixedAccount.category_id == category_id)
        if supplier_id is not None:
            q = q.filter(models.FixedAccount.supplier_id == supplier_id)
        if due_date_from is not None:
            q = q.filter(models.FixedAccountTransaction.due_date >= due_date_from)
        if due_date_to is not None:
            q = q.filter(models.FixedAccountTransaction.due_date <= due_date_to)

        total = q.count()
        rows = (
            q.options(
                selectinload(models.FixedAccountTransaction.fixed_account).selectinload(models.FixedAccount.category),
                selectinload(models.FixedAccountTransaction.fixed_account).selectinload(models.FixedAccount.supplier),
            )
            .order_by(models.FixedAccountTransaction.due_date.asc(), models.FixedAccountTransaction.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        pagination = {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}
        return rows, pagination

    def get_transaction(self, user_id: int, transaction_id: int) -> models.FixedAccountTransaction:
        row = (
            self.db.query(models.FixedAccountTransaction)
            .filter(
                models.FixedAccountTransaction.id == transaction_id,
                models.FixedAccountTransaction.user_id == user_id,
            )
            .first()
        )
        if row is None:
            raise NotFoundError("Fixed account transaction not found")
        return row

    def update_transaction(
        self, occurrence: models.FixedAccountTransaction, patch: dict[str, Any]
    ) -> models.FixedAccountTransaction:
        if occurrence.status == models.OccurrenceStatus.PAID:
            raise ValidationError("A paid fixed account transaction cannot be modified")
        changes = {k: v for k, v in patch.items() if k in _TRANSACTION_UPDATABLE_FIELDS}
        if not changes:
            raise ValidationError("No updatable field provided")
        for key, value in changes.items():
            setattr(occurrence, key, value)
        self.db.commit()
        self.db.refresh(occurrence)
        logger.info("Fixed account transaction %s updated (%s)", occurrence.id, ", ".join(sorted(changes)))
        return occurrence

    def cancel_transaction(self, occurrence: models.FixedAccountTransaction) -> models.FixedAccountTransaction:
        if occurrence.status == models.OccurrenceStatus.PAID:
            raise ValidationError("A paid fixed account transaction cannot be cancelled")
        if occurrence.status == models.OccurrenceStatus.CANCELLED:
            raise ValidationError("Fixed account transaction is already cancelled")
        marker = f"[CANCELLED at {models.now_local_naive().isoformat(timespec='seconds')}]"
        occurrence.status = models.OccurrenceStatus.CANCELLED
        occurrence.observations = f"{occurrence.observations}\n{marker}" if occurrence.observations else marker
        self.db.commit()
        self.db.refresh(occurrence)
        logger.info("Fixed account transaction %s cancelled", occurrence.id)
        return occurrence

    # ---- Reporting ---------------------------------------------------------
    def get_statistics(self, *, user_id: int, today: Optional[date] = None) -> dict[str, Any]:
        today = today or models.today_local()
        next_month = today.replace(day=1) + relativedelta(months=1)
        month_after = next_month + relativedelta(months=1)

        rows = self.get_all(user_id=user_id)
        stats: dict[str, Any] = {
            "total": 0,
            "total_amount": 0.0,
            "active": 0,
            "inactive": 0,
            "paid": 0,
            "unpaid": 0,
            "overdue": 0,
            "due_this_month": 0,
            "due_next_month": 0,
            "by_periodicity": {p: 0 for p in models.Periodicity},
            "by_category": {},
            "by_supplier": {},
            "by_status": {s: 0 for s in models.OccurrenceStatus},
            "total_monthly_value": 0.0,
            "total_yearly_value": 0.0,
        }
        for row in rows:
            amount = float(row.amount)
            stats["total"] += 1
            stats["total_amount"] += amount
            stats["active" if row.is_active else "inactive"] += 1
            stats["paid" if row.is_paid else "unpaid"] += 1

            due = row.next_due_date
            if due < today and not row.is_paid:
                stats["overdue"] += 1
            if today <= due < next_month:
                stats["due_this_month"] += 1
            elif next_month <= due < month_after:
                stats["due_next_month"] += 1

            stats["by_periodicity"][row.periodicity] += 1
            if row.category is not None:
                bucket = stats["by_category"].setdefault(
                    row.category.name, {"count": 0, "total_amount": 0.0, "color": row.category.color}
                )
                bucket["count"] += 1
                bucket["total_amount"] += amount
            if row.supplier is not None:
                bucket = stats["by_supplier"].setdefault(row.supplier.name, {"count": 0, "total_amount": 0.0})
                bucket["count"] += 1
                bucket["total_amount"] += amount

            stats["total_monthly_value"] += monthly_equivalent(amount, row.periodicity)
            stats["total_yearly_value"] += yearly_equivalent(amount, row.periodicity)
        status_rows = (
            self.db.query(models.FixedAccountTransaction.status, func.count(models.FixedAccountTransaction.id))
            .filter(models.FixedAccountTransaction.user_id == user_id)
            .group_by(models.FixedAccountTransaction.status)
            .all()
        )
        for status_value, count in status_rows:
            stats["by_status"][models.OccurrenceStatus(status_value)] = count

        for key in ("total_amount", "total_monthly_value", "total_yearly_value"):
            stats[key] = round(stats[key], 2)
        for bucket in (*stats["by_category"].values(), *stats["by_supplier"].values()):
            bucket["total_amount"] = round(bucket["total_amount"], 2)
        return stats

    def generate_notifications(self, user_id: Optional[int] = None, *, today: Optional[date] = None) -> dict[str, int]:
        """Count (and log) active unpaid templates whose reminder window has opened."""
        today = today or models.today_local()
        q = self.db.query(models.FixedAccount).filter(
            models.FixedAccount.is_active.is_(True),
            models.FixedAccount.is_paid.is_(False),
        )
        if user_id is not None:
            q = q.filter(models.FixedAccount.user_id == user_id)
        rows = q.all()
        notifications = 0
        for row in rows:
            if row.is_due_soon(today):
                notifications += 1
                logger.info(
                    "Reminder for fixed account %s (user %s, due %s, reminder_days=%s)",
                    row.id,
                    row.user_id,
                    row.next_due_date,
                    row.reminder_days,
                )
        return {"processed": len(rows), "notifications": notifications}
