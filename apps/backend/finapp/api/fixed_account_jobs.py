from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finapp import models
from finapp.core.database import get_db
from finapp.schemas import JobConfigOut, JobExecutionOut, JobHistoryOut, JobRunRequest, JobStatsOut
from finapp.services.fixed_account_jobs import FixedAccountJobService, get_job_config


router = APIRouter(prefix="/fixed-account-jobs", tags=["fixed-account-jobs"])


@router.post("/process", response_model=JobExecutionOut)
def run_processing_job(payload: JobRunRequest | None = None, db: Session = Depends(get_db)):
    user_id = payload.user_id if payload else None
    return FixedAccountJobService(db).process_overdue_fixed_accounts(user_id)


@router.post("/notifications", response_model=JobExecutionOut)
def run_notification_job(payload: JobRunRequest | None = None, db: Session = Depends(get_db)):
    user_id = payload.user_id if payload else None
    return FixedAccountJobService(db).create_fixed_account_notifications(user_id)


@router.post("/run-all", response_model=dict[str, JobExecutionOut])
def run_all_jobs(payload: JobRunRequest | None = None, db: Session = Depends(get_db)):
    user_id = payload.user_id if payload else None
    return FixedAccountJobService(db).run_all_fixed_account_jobs(user_id)


@router.get("/history", response_model=JobHistoryOut)
def job_history(
    job_name: Optional[str] = Query(None),
    status: Optional[models.JobStatus] = Query(None),
    started_from: Optional[date] = Query(None),
    started_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, pagination = FixedAccountJobService(db).get_history(
        job_name=job_name,
        status=status,
        started_from=started_from,
        started_to=started_to,
        page=page,
        limit=limit,
    )
    return {"executions": rows, "pagination": pagination}


@router.get("/stats", response_model=JobStatsOut)
def job_stats(period: Literal["day", "week", "month"] = Query("day"), db: Session = Depends(get_db)):
    return FixedAccountJobService(db).get_stats(period)


@router.get("/config", response_model=JobConfigOut)
def job_config():
    return get_job_config()
