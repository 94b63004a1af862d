from __future__ import annotations

from datetime import date

import pytest

from finapp import models
from finapp.services import FixedAccountJobService, FixedAccountService
from finapp.services.fixed_account_jobs import NOTIFICATION_JOB, PROCESS_JOB, get_job_config


TODAY = date(2026, 2, 10)


def test_processing_job_records_success(db_session, make_fixed_account):
    make_fixed_account()

    execution = FixedAccountJobService(db_session).process_overdue_fixed_accounts(today=TODAY)

    assert execution.job_name == PROCESS_JOB
    assert execution.status == models.JobStatus.SUCCESS
    assert execution.new_transactions == 1
    assert execution.updated_accounts == 1
    assert execution.errors == 0
    assert execution.finished_at is not None
    assert execution.duration_ms >= 0
    assert execution.extra_metadata["marked_overdue"] == 1
    assert execution.extra_metadata["processed"] == 1


def test_processing_job_records_failure(db_session, monkeypatch):
    svc = FixedAccountJobService(db_session)

    def boom(*args, **kwargs):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(svc.fixed_accounts, "check_overdue_fixed_accounts", boom)

    with pytest.raises(RuntimeError):
        svc.process_overdue_fixed_accounts(today=TODAY)

    execution = db_session.query(models.JobExecution).one()
    assert execution.status == models.JobStatus.FAILED
    assert execution.error_message == "database on fire"
    assert execution.finished_at is not None


def _notifications(db_session) -> dict[int, models.Notification]:
    return {n.related_id: n for n in db_session.query(models.Notification).all()}


def test_notification_job_classifies_by_due_date(db_session, make_fixed_account):
    _, late = make_fixed_account(description="Late", start_date=date(2026, 2, 1))
    _, today = make_fixed_account(description="Today", start_date=TODAY)
    _, soon = make_fixed_account(description="Soon", start_date=date(2026, 2, 12))
    _, later = make_fixed_account(description="Later", start_date=date(2026, 2, 20))

    execution = FixedAccountJobService(db_session).create_fixed_account_notifications(today=TODAY)

    assert execution.status == models.JobStatus.SUCCESS
    assert execution.notifications_created == 3
    created = _notifications(db_session)
    assert later.id not in created
    assert created[late.id].type == models.NotificationType.FIXED_ACCOUNT_OVERDUE
    assert created[late.id].priority == models.NotificationPriority.URGENT
    assert created[today.id].type == models.NotificationType.FIXED_ACCOUNT_DUE_TODAY
    assert created[today.id].priority == models.NotificationPriority.HIGH
    assert created[soon.id].type == models.NotificationType.FIXED_ACCOUNT_DUE
    assert created[soon.id].priority == models.NotificationPriority.MEDIUM
    assert created[soon.id].related_type == "fixed_account_transaction"
    assert "Soon" in created[soon.id].title


def test_notification_job_skips_recent_duplicates(db_session, make_fixed_account):
    make_fixed_account(start_date=TODAY)
    svc = FixedAccountJobService(db_session)
    svc.create_fixed_account_notifications(today=TODAY)

    second = svc.create_fixed_account_notifications(today=TODAY)

    assert second.notifications_created == 0
    assert second.extra_metadata["duplicates_skipped"] == 1
    assert db_session.query(models.Notification).count() == 1


def test_notification_job_ignores_paid_and_inactive(db_session, user, bank_account, make_fixed_account):
    paid_row, paid = make_fixed_account(description="Paid", start_date=TODAY)
    inactive_row, _ = make_fixed_account(description="Inactive", start_date=TODAY)
    fixed = FixedAccountService(db_session)
    fixed.pay_fixed_account_transactions(
        user_id=user.id, transaction_ids=[paid.id], payment_date=TODAY, account_id=bank_account.id
    )
    fixed.toggle(inactive_row)

    execution = FixedAccountJobService(db_session).create_fixed_account_notifications(today=TODAY)

    assert execution.notifications_created == 0


def test_run_all_runs_both_jobs_in_order(db_session, make_fixed_account):
    make_fixed_account(start_date=date(2026, 1, 10))

    result = FixedAccountJobService(db_session).run_all_fixed_account_jobs(today=TODAY)

    assert result["processing"].job_name == PROCESS_JOB
    assert result["notifications"].job_name == NOTIFICATION_JOB
    # the overdue Jan 10 occurrence and the freshly generated Feb 10 one
    assert result["notifications"].notifications_created == 2


def test_history_and_stats(db_session, monkeypatch):
    svc = FixedAccountJobService(db_session)
    svc.process_overdue_fixed_accounts(today=TODAY)
    svc.create_fixed_account_notifications(today=TODAY)
    monkeypatch.setattr(svc.fixed_accounts, "check_overdue_fixed_accounts", lambda *a, **k: 1 / 0)
    with pytest.raises(ZeroDivisionError):
        svc.process_overdue_fixed_accounts(today=TODAY)

    rows, pagination = svc.get_history(job_name=PROCESS_JOB)
    assert pagination["total"] == 2
    assert all(r.job_name == PROCESS_JOB for r in rows)

    failed, _ = svc.get_history(status=models.JobStatus.FAILED)
    assert len(failed) == 1

    rows, pagination = svc.get_history(page=2, limit=2)
    assert len(rows) == 1
    assert pagination["pages"] == 2

    stats = svc.get_stats("week")
    assert stats["total_executions"] == 3
    assert stats["successful_executions"] == 2
    assert stats["failed_executions"] == 1
    assert stats["success_rate"] == pytest.approx(66.67)
    assert stats["by_job"][PROCESS_JOB] == {"total": 2, "success": 1, "failed": 1}


def test_job_config_reports_schedules():
    config = get_job_config()
    schedules = {j["job_name"]: j["schedule"] for j in config["jobs"]}
    assert schedules == {PROCESS_JOB: "0 6 * * *", NOTIFICATION_JOB: "0 */4 * * *"}
    assert config["notification_window_days"] == 3
    assert config["notification_dedup_hours"] == 24
