from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from finapp import models
from finapp.core.errors import NotFoundError


logger = logging.getLogger(__name__)


class TransactionBalanceService:
    """Create ledger entries and move bank account balances.

    Callers own the database transaction: nothing here commits.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_from_fixed_account(
        self,
        fixed_account: models.FixedAccount,
        *,
        account_id: int,
        amount: float,
        payment_date: date,
        payment_method: Optional[models.PaymentMethod] = None,
    ) -> models.Transaction:
        method = payment_method
        if method is None and fixed_account.payment_method is not None:
            method = models.PaymentMethod(fixed_account.payment_method.value)
        txn = models.Transaction(
            user_id=fixed_account.user_id,
            account_id=account_id,
            category_id=fixed_account.category_id,
            supplier_id=fixed_account.supplier_id,
            fixed_account_id=fixed_account.id,
            type=fixed_account.type,
            amount=amount,
            description=f"Fixed account: {fixed_account.description}",
            payment_method=method,
            payment_date=payment_date,
            date=payment_date,
        )
        self.db.add(txn)
        self.db.flush()
        logger.info(
            "Ledger transaction %s created from fixed account %s (%s %.2f)",
            txn.id,
            fixed_account.id,
            fixed_account.type.value,
            float(amount),
        )
        return txn

    def apply_balance(self, account_id: int, amount: float, entry_type: models.EntryType) -> float:
        """Credit income or debit expense ``amount`` on the account; returns the new balance."""
        account = self.db.get(models.Account, account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        magnitude = abs(float(amount or 0))
        delta = magnitude if entry_type == models.EntryType.INCOME else -magnitude
        account.balance = round(float(account.balance or 0) + delta, 2)
        logger.debug("Account %s balance changed by %.2f to %.2f", account_id, delta, account.balance)
        return float(account.balance)
