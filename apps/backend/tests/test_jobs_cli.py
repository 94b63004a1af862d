from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from finapp import jobs, models
from finapp.services import FixedAccountJobService


@pytest.fixture()
def cli_session(engine, monkeypatch):
    monkeypatch.setattr(jobs, "SessionLocal", sessionmaker(bind=engine, autocommit=False, autoflush=False))


def test_parser_accepts_user_filter():
    args = jobs.build_parser().parse_args(["run-all", "--user-id", "3"])
    assert args.command == "run-all"
    assert args.user_id == 3


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        jobs.build_parser().parse_args([])


def test_process_command_prints_summary(cli_session, db_session, capsys):
    code = jobs.main(["process"])

    assert code == 0
    out = capsys.readouterr().out
    assert "fixed_account_processing: success" in out
    assert db_session.query(models.JobExecution).filter_by(job_name="fixed_account_processing").count() == 1


def test_run_all_command_runs_both_jobs(cli_session, capsys):
    assert jobs.main(["run-all"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert [line.split(":")[0] for line in lines] == ["fixed_account_processing", "fixed_account_notifications"]


def test_failed_job_exits_non_zero(cli_session, monkeypatch):
    def boom(self, user_id=None, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(FixedAccountJobService, "create_fixed_account_notifications", boom)

    assert jobs.main(["notifications"]) == 1
