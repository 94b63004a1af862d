from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from finapp.core.database import get_db
from finapp.core.deps import get_current_user
from finapp.schemas import (
    FixedAccountCreate,
    FixedAccountCreateOut,
    FixedAccountOut,
    FixedAccountPayRequest,
    FixedAccountPaymentResult,
    FixedAccountStatisticsOut,
    FixedAccountUpdate,
)
from finapp.services.fixed_account_service import FixedAccountService


router = APIRouter(prefix="/fixed-accounts", tags=["fixed-accounts"])


@router.post("", response_model=FixedAccountCreateOut, status_code=201)
def create_fixed_account(
    payload: FixedAccountCreate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = FixedAccountService(db)
    row, first = svc.create_fixed_account(payload.model_dump(), user_id=current_user.id)
    return {"fixed_account": row, "first_transaction": first}


@router.get("", response_model=list[FixedAccountOut])
def list_fixed_accounts(db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return FixedAccountService(db).get_all(user_id=current_user.id)


# declared before /{fixed_account_id} so "statistics" is not parsed as an id
@router.get("/statistics", response_model=FixedAccountStatisticsOut)
def fixed_account_statistics(db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return FixedAccountService(db).get_statistics(user_id=current_user.id)


@router.get("/{fixed_account_id}", response_model=FixedAccountOut)
def get_fixed_account(fixed_account_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return FixedAccountService(db).get_by_id(current_user.id, fixed_account_id)


@router.put("/{fixed_account_id}", response_model=FixedAccountOut)
def update_fixed_account(
    fixed_account_id: int,
    payload: FixedAccountUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = FixedAccountService(db)
    row = svc.get_by_id(current_user.id, fixed_account_id)
    return svc.update(row, payload.model_dump(exclude_unset=True))


@router.patch("/{fixed_account_id}/toggle", response_model=FixedAccountOut)
def toggle_fixed_account(fixed_account_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    svc = FixedAccountService(db)
    return svc.toggle(svc.get_by_id(current_user.id, fixed_account_id))


@router.post("/{fixed_account_id}/pay", response_model=FixedAccountPaymentResult)
def pay_fixed_account(
    fixed_account_id: int,
    payload: FixedAccountPayRequest | None = None,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = FixedAccountService(db)
    row = svc.get_by_id(current_user.id, fixed_account_id)
    data = payload.model_dump() if payload else {}
    return svc.pay_fixed_account(row, **data)


@router.delete("/{fixed_account_id}", status_code=204)
def delete_fixed_account(fixed_account_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    svc = FixedAccountService(db)
    svc.delete(svc.get_by_id(current_user.id, fixed_account_id))
    return None
