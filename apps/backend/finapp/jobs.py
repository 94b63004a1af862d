"""
Command-line entry point for the fixed-account jobs.

Meant to be called by an external scheduler, e.g. crontab::

    0 6 * * *    python -m finapp.jobs process
    0 */4 * * *  python -m finapp.jobs notifications

Each command records a JobExecution row and prints a one-line summary.
The exit status is 0 on success and 1 when the job failed.
"""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from sqlalchemy.orm import Session

from .core.database import SessionLocal, session_scope
from .core.logging import configure_logging
from .models import JobExecution
from .services.fixed_account_jobs import FixedAccountJobService


logger = logging.getLogger(__name__)


def _summary(execution: JobExecution) -> str:
    return (
        f"{execution.job_name}: {execution.status.value} "
        f"new_transactions={execution.new_transactions} "
        f"updated_accounts={execution.updated_accounts} "
        f"notifications_created={execution.notifications_created} "
        f"errors={execution.errors} "
        f"duration_ms={execution.duration_ms}"
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="finapp.jobs", description="Run fixed-account background jobs.")
    ap.add_argument("--log-level", default=None, help="Override FINAPP_LOG_LEVEL for this run.")
    subparsers = ap.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("process", "Mark overdue occurrences and generate the ones that came due."),
        ("notifications", "Create due/overdue notifications."),
        ("run-all", "Run processing, then notifications."),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--user-id", type=int, default=None, help="Limit the run to one user.")
    return ap


def run(command: str, db: Session, user_id: int | None = None) -> list[JobExecution]:
    svc = FixedAccountJobService(db)
    if command == "process":
        return [svc.process_overdue_fixed_accounts(user_id)]
    if command == "notifications":
        return [svc.create_fixed_account_notifications(user_id)]
    if command == "run-all":
        return list(svc.run_all_fixed_account_jobs(user_id).values())
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        with session_scope(SessionLocal) as db:
            lines = [_summary(e) for e in run(args.command, db, user_id=args.user_id)]
    except Exception:
        # the traceback was already logged by the job runner
        logger.error("Job command %r failed", args.command)
        return 1

    for line in lines:
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
