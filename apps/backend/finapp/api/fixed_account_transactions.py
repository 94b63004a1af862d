from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finapp import models
from finapp.core.database import get_db
from finapp.core.deps import get_current_user
from finapp.schemas import (
    FixedAccountPaymentRequest,
    FixedAccountPaymentResult,
    FixedAccountTransactionDetailOut,
    FixedAccountTransactionOut,
    FixedAccountTransactionPage,
    FixedAccountTransactionUpdate,
)
from finapp.services.fixed_account_service import FixedAccountService


router = APIRouter(prefix="/fixed-account-transactions", tags=["fixed-account-transactions"])


@router.get("", response_model=FixedAccountTransactionPage)
def list_fixed_account_transactions(
    status: Optional[models.OccurrenceStatus] = Query(None),
    category_id: Optional[int] = Query(None, gt=0),
    supplier_id: Optional[int] = Query(None, gt=0),
    due_date_from: Optional[date] = Query(None),
    due_date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    rows, pagination = FixedAccountService(db).list_fixed_account_transactions(
        user_id=current_user.id,
        status=status,
        category_id=category_id,
        supplier_id=supplier_id,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        page=page,
        limit=limit,
    )
    return {"items": rows, "pagination": pagination}


@router.post("/pay", response_model=FixedAccountPaymentResult)
def pay_fixed_account_transactions(
    payload: FixedAccountPaymentRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return FixedAccountService(db).pay_fixed_account_transactions(user_id=current_user.id, **payload.model_dump())


@router.get("/{transaction_id}", response_model=FixedAccountTransactionDetailOut)
def get_fixed_account_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return FixedAccountService(db).get_transaction(current_user.id, transaction_id)


@router.put("/{transaction_id}", response_model=FixedAccountTransactionOut)
def update_fixed_account_transaction(
    transaction_id: int,
    payload: FixedAccountTransactionUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = FixedAccountService(db)
    occurrence = svc.get_transaction(current_user.id, transaction_id)
    return svc.update_transaction(occurrence, payload.model_dump(exclude_unset=True))


@router.post("/{transaction_id}/cancel", response_model=FixedAccountTransactionOut)
def cancel_fixed_account_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = FixedAccountService(db)
    return svc.cancel_transaction(svc.get_transaction(current_user.id, transaction_id))
