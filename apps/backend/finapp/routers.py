from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .core.database import get_db
from .core.deps import get_current_user
from .core.errors import ConflictError, NotFoundError
from . import models
from .schemas import (
    AccountCreate,
    AccountOut,
    CategoryCreate,
    CategoryOut,
    NotificationOut,
    SupplierCreate,
    SupplierOut,
    TransactionOut,
)
from .api.fixed_accounts import router as fixed_accounts_router
from .api.fixed_account_transactions import router as fixed_account_transactions_router
from .api.fixed_account_jobs import router as fixed_account_jobs_router


router = APIRouter()
router.include_router(fixed_accounts_router)
router.include_router(fixed_account_transactions_router)
router.include_router(fixed_account_jobs_router)


@router.post("/accounts", response_model=AccountOut, status_code=201)
def create_account(payload: AccountCreate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    item = models.Account(user_id=current_user.id, **payload.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@router.get("/accounts", response_model=list[AccountOut])
def list_accounts(db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return (
        db.query(models.Account)
        .filter(models.Account.user_id == current_user.id)
        .order_by(models.Account.id)
        .all()
    )


@router.get("/accounts/{account_id}", response_model=AccountOut)
def get_account(account_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    item = (
        db.query(models.Account)
        .filter(models.Account.id == account_id, models.Account.user_id == current_user.id)
        .first()
    )
    if not item:
        raise NotFoundError("Bank account not found")
    return item


@router.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    data = payload.model_dump()
    # default categories are shared, so they carry no owner
    owner = None if data["is_default"] else current_user.id
    dup = (
        db.query(models.Category)
        .filter(
            models.Category.user_id.is_(None) if owner is None else models.Category.user_id == owner,
            models.Category.name == data["name"],
            models.Category.type == data["type"],
        )
        .first()
    )
    if dup:
        raise ConflictError("Category with same name and type already exists")
    item = models.Category(user_id=owner, **data)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(
    type: Optional[models.EntryType] = Query(None),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    q = db.query(models.Category).filter(
        or_(models.Category.user_id == current_user.id, models.Category.is_default.is_(True))
    )
    if type is not None:
        q = q.filter(models.Category.type == type)
    return q.order_by(models.Category.type, models.Category.name).all()


@router.post("/suppliers", response_model=SupplierOut, status_code=201)
def create_supplier(payload: SupplierCreate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    dup = (
        db.query(models.Supplier)
        .filter(models.Supplier.user_id == current_user.id, models.Supplier.name == payload.name)
        .first()
    )
    if dup:
        raise ConflictError("Supplier with same name already exists")
    item = models.Supplier(user_id=current_user.id, **payload.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@router.get("/suppliers", response_model=list[SupplierOut])
def list_suppliers(db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return (
        db.query(models.Supplier)
        .filter(models.Supplier.user_id == current_user.id)
        .order_by(models.Supplier.name)
        .all()
    )


@router.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    response: Response,
    fixed_account_id: Optional[int] = Query(None, gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    q = db.query(models.Transaction).filter(models.Transaction.user_id == current_user.id)
    if fixed_account_id is not None:
        q = q.filter(models.Transaction.fixed_account_id == fixed_account_id)
    total = q.count()
    response.headers["X-Total-Count"] = str(total)
    return (
        q.order_by(models.Transaction.date.desc(), models.Transaction.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )


@router.get("/notifications", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    q = db.query(models.Notification).filter(
        models.Notification.user_id == current_user.id,
        models.Notification.is_active.is_(True),
    )
    if unread_only:
        q = q.filter(models.Notification.is_read.is_(False))
    return q.order_by(models.Notification.created_at.desc(), models.Notification.id.desc()).all()


@router.patch("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(notification_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    item = (
        db.query(models.Notification)
        .filter(models.Notification.id == notification_id, models.Notification.user_id == current_user.id)
        .first()
    )
    if not item:
        raise NotFoundError("Notification not found")
    item.is_read = True
    db.commit()
    db.refresh(item)
    return item
