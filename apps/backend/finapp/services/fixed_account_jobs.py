from __future__ import annotations

import logging
import math
import time
from datetime import date, datetime, timedelta
from typing import Any, Callable, Literal, Optional

from sqlalchemy.orm import Session

from finapp import models
from finapp.core.config import settings
from finapp.core.errors import ValidationError
from finapp.services.fixed_account_service import FixedAccountService


logger = logging.getLogger(__name__)

PROCESS_JOB = "fixed_account_processing"
NOTIFICATION_JOB = "fixed_account_notifications"

_PERIOD_DAYS = {"day": 1, "week": 7, "month": 30}
_RELATED_TYPE = "fixed_account_transaction"


class FixedAccountJobService:
    """Background jobs around fixed accounts, each run recorded as a JobExecution."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.fixed_accounts = FixedAccountService(db)

    # ---- Execution bookkeeping ---------------------------------------------
    def _run(self, job_name: str, body: Callable[[], dict[str, Any]]) -> models.JobExecution:
        execution = models.JobExecution(job_name=job_name, status=models.JobStatus.RUNNING)
        self.db.add(execution)
        self.db.commit()
        started = time.perf_counter()
        logger.info("Job %s started (execution %s)", job_name, execution.id)
        try:
            result = body()
        except Exception as exc:
            self.db.rollback()
            execution.status = models.JobStatus.FAILED
            execution.error_message = str(exc)
            execution.errors = (execution.errors or 0) + 1
            execution.finished_at = models.now_local_naive()
            execution.duration_ms = int((time.perf_counter() - started) * 1000)
            self.db.commit()
            logger.exception("Job %s failed (execution %s)", job_name, execution.id)
            raise

        execution.status = models.JobStatus.SUCCESS
        execution.new_transactions = result.get("new_transactions", 0)
        execution.updated_accounts = result.get("updated_accounts", 0)
        execution.notifications_created = result.get("notifications_created", 0)
        execution.errors = result.get("errors", 0)
        execution.extra_metadata = dict(result)
        execution.finished_at = models.now_local_naive()
        execution.duration_ms = int((time.perf_counter() - started) * 1000)
        self.db.commit()
        self.db.refresh(execution)
        logger.info(
            "Job %s finished in %sms: %s",
            job_name,
            execution.duration_ms,
            ", ".join(f"{k}={v}" for k, v in sorted(result.items())),
        )
        return execution

    # ---- Jobs --------------------------------------------------------------
    def process_overdue_fixed_accounts(
        self, user_id: Optional[int] = None, *, today: Optional[date] = None
    ) -> models.JobExecution:
        def body() -> dict[str, Any]:
            result = self.fixed_accounts.check_overdue_fixed_accounts(user_id, today=today)
            if user_id is not None:
                result["user_id"] = user_id
            return result

        return self._run(PROCESS_JOB, body)

    def create_fixed_account_notifications(
        self, user_id: Optional[int] = None, *, today: Optional[date] = None
    ) -> models.JobExecution:
        return self._run(NOTIFICATION_JOB, lambda: self._create_notifications(user_id, today or models.today_local()))

    def run_all_fixed_account_jobs(
        self, user_id: Optional[int] = None, *, today: Optional[date] = None
    ) -> dict[str, models.JobExecution]:
        processing = self.process_overdue_fixed_accounts(user_id, today=today)
        notifications = self.create_fixed_account_notifications(user_id, today=today)
        return {"processing": processing, "notifications": notifications}

    def _classify(
        self, occurrence: models.FixedAccountTransaction, today: date
    ) -> tuple[models.NotificationType, models.NotificationPriority, str, str]:
        row = occurrence.fixed_account
        amount = float(occurrence.amount)
        if occurrence.is_overdue(today):
            days = (today - occurrence.due_date).days
            return (
                models.NotificationType.FIXED_ACCOUNT_OVERDUE,
                models.NotificationPriority.URGENT,
                f"Overdue: {row.description}",
                f"{row.description} ({amount:.2f}) was due on {occurrence.due_date.isoformat()}, {days} day(s) ago.",
            )
        if occurrence.due_date == today:
            return (
                models.NotificationType.FIXED_ACCOUNT_DUE_TODAY,
                models.NotificationPriority.HIGH,
                f"Due today: {row.description}",
                f"{row.description} ({amount:.2f}) is due today.",
            )
        days = (occurrence.due_date - today).days
        return (
            models.NotificationType.FIXED_ACCOUNT_DUE,
            models.NotificationPriority.MEDIUM,
            f"Due soon: {row.description}",
            f"{row.description} ({amount:.2f}) is due in {days} day(s), on {occurrence.due_date.isoformat()}.",
        )

    def _create_notifications(self, user_id: Optional[int], today: date) -> dict[str, Any]:
        if user_id is not None:
            user_ids = [user_id]
        else:
            user_ids = [
                r[0]
                for r in self.db.query(models.User.id)
                .filter(models.User.is_active.is_(True))
                .order_by(models.User.id)
                .all()
            ]

        totals = {"users": len(user_ids), "checked": 0, "notifications_created": 0, "duplicates_skipped": 0, "errors": 0}
        for uid in user_ids:
            try:
                checked, created, duplicates = self._notify_user(uid, today)
                self.db.commit()
            except Exception:
                self.db.rollback()
                totals["errors"] += 1
                logger.exception("Failed to create fixed account notifications for user %s", uid)
                continue
            totals["checked"] += checked
            totals["notifications_created"] += created
            totals["duplicates_skipped"] += duplicates
        return totals

    def _notify_user(self, user_id: int, today: date) -> tuple[int, int, int]:
        horizon = today + timedelta(days=settings.NOTIFICATION_WINDOW_DAYS)
        dedup_since = models.now_local_naive() - timedelta(hours=settings.NOTIFICATION_DEDUP_HOURS)

        occurrences = (
            self.db.query(models.FixedAccountTransaction)
            .join(models.FixedAccount, models.FixedAccountTransaction.fixed_account_id == models.FixedAccount.id)
            .filter(
                models.FixedAccountTransaction.user_id == user_id,
                models.FixedAccount.is_active.is_(True),
                models.FixedAccountTransaction.status.in_(models.PAYABLE_STATUSES),
                models.FixedAccountTransaction.due_date <= horizon,
            )
            .order_by(models.FixedAccountTransaction.due_date)
            .all()
        )

        created = 0
        duplicates = 0
        for occurrence in occurrences:
            ntype, priority, title, message = self._classify(occurrence, today)
            recent = (
                self.db.query(models.Notification.id)
                .filter(
                    models.Notification.user_id == user_id,
                    models.Notification.type == ntype,
                    models.Notification.related_type == _RELATED_TYPE,
                    models.Notification.related_id == occurrence.id,
                    models.Notification.created_at >= dedup_since,
                )
                .first()
            )
            if recent:
                duplicates += 1
                continue
            self.db.add(
                models.Notification(
                    user_id=user_id,
                    type=ntype,
                    title=title,
                    message=message,
                    priority=priority,
                    related_type=_RELATED_TYPE,
                    related_id=occurrence.id,
                )
            )
            created += 1
        if created:
            logger.info("%s notification(s) created for user %s", created, user_id)
        return len(occurrences), created, duplicates

    # ---- Reporting ---------------------------------------------------------
    def get_history(
        self,
        *,
        job_name: Optional[str] = None,
        status: Optional[models.JobStatus] = None,
        started_from: Optional[date] = None,
        started_to: Optional[date] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[models.JobExecution], dict[str, int]]:
        limit = limit or settings.JOB_HISTORY_PAGE_SIZE
        q = self.db.query(models.JobExecution)
        if job_name:
            q = q.filter(models.JobExecution.job_name == job_name)
        if status is not None:
            q = q.filter(models.JobExecution.status == status)
        if started_from is not None:
            q = q.filter(models.JobExecution.started_at >= datetime.combine(started_from, datetime.min.time()))
        if started_to is not None:
            q = q.filter(models.JobExecution.started_at < datetime.combine(started_to + timedelta(days=1), datetime.min.time()))
        total = q.count()
        rows = (
            q.order_by(models.JobExecution.started_at.desc(), models.JobExecution.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}

    def get_stats(self, period: Literal["day", "week", "month"] = "day") -> dict[str, Any]:
        if period not in _PERIOD_DAYS:
            raise ValidationError("period must be one of: day, week, month")
        since = models.now_local_naive() - timedelta(days=_PERIOD_DAYS[period])
        rows = self.db.query(models.JobExecution).filter(models.JobExecution.started_at >= since).all()

        by_job: dict[str, dict[str, int]] = {}
        durations: list[int] = []
        success = 0
        failed = 0
        for row in rows:
            bucket = by_job.setdefault(row.job_name, {"total": 0, "success": 0, "failed": 0})
            bucket["total"] += 1
            if row.status == models.JobStatus.SUCCESS:
                success += 1
                bucket["success"] += 1
            elif row.status == models.JobStatus.FAILED:
                failed += 1
                bucket["failed"] += 1
            if row.duration_ms is not None:
                durations.append(row.duration_ms)

        total = len(rows)
        return {
            "period": period,
            "total_executions": total,
            "successful_executions": success,
            "failed_executions": failed,
            "success_rate": round(success / total * 100, 2) if total else 0.0,
            "average_duration_ms": round(sum(durations) / len(durations), 2) if durations else None,
            "by_job": by_job,
        }


def get_job_config() -> dict[str, Any]:
    return {
        "jobs": [
            {
                "job_name": PROCESS_JOB,
                "schedule": settings.PROCESSING_SCHEDULE,
                "description": "Mark late occurrences overdue and generate occurrences that came due",
            },
            {
                "job_name": NOTIFICATION_JOB,
                "schedule": settings.NOTIFICATION_SCHEDULE,
                "description": "Notify about overdue, due today and upcoming occurrences",
            },
        ],
        "notification_window_days": settings.NOTIFICATION_WINDOW_DAYS,
        "notification_dedup_hours": settings.NOTIFICATION_DEDUP_HOURS,
        "timezone": settings.TIMEZONE,
    }
