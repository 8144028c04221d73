# tests/test_worker.py

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from taskhub import celery_worker, config, database, email_utils, models
from taskhub.enums import TaskStatus
from taskhub.timeutils import today

from .fakes import RecordingMailer


@pytest.fixture()
def worker_db(engine, db, monkeypatch):
    """Point the worker's SessionLocal at the test database."""
    monkeypatch.setattr(database, "SessionLocal", sessionmaker(bind=engine, autocommit=False, autoflush=False))
    return db


@pytest.fixture()
def mailer(monkeypatch) -> RecordingMailer:
    mailer = RecordingMailer()
    monkeypatch.setattr(email_utils, "dispatch_email", mailer)
    return mailer


def test_beat_schedule_names_registered_tasks() -> None:
    for entry in celery_worker.celery.conf.beat_schedule.values():
        assert entry["task"] in celery_worker.celery.tasks


def test_overdue_job(worker_db, mailer, alice) -> None:
    task = models.Task(title="Renew cert", created_by=alice.id, due_date=today() - timedelta(days=2))
    task.apply_status(TaskStatus.IN_PROGRESS)
    worker_db.add(task)
    worker_db.commit()

    assert celery_worker.send_overdue_task_notifications.run() == 1
    assert mailer.recipients == [alice.email]


def test_weekly_reports_cover_active_teams(worker_db, mailer, team, manager, alice) -> None:
    assert celery_worker.send_weekly_team_reports.run() == 1
    assert sorted(mailer.recipients) == sorted([manager.email, alice.email])


def test_celery_backend_queues_email(monkeypatch) -> None:
    queued = []
    monkeypatch.setattr(config, "EMAIL_BACKEND", "celery")
    monkeypatch.setattr(celery_worker.send_email_async, "delay", lambda *args: queued.append(args))

    email_utils.dispatch_email("ops@taskhub.io", "Hello", "Body")

    assert queued == [("ops@taskhub.io", "Hello", "Body")]


class FakeSMTP:
    instances: list[FakeSMTP] = []

    def __init__(self, host, port) -> None:
        self.address = (host, port)
        self.calls: list[str] = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> FakeSMTP:
        return self

    def __exit__(self, *exc_info) -> None:
        self.calls.append("quit")

    def starttls(self) -> None:
        self.calls.append("starttls")

    def login(self, user, password) -> None:
        self.calls.append("login")

    def send_message(self, message) -> None:
        self.messages.append(message)


def test_email_task_delivers_over_smtp(monkeypatch) -> None:
    FakeSMTP.instances = []
    monkeypatch.setattr(email_utils.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(config, "SMTP_PASSWORD", "app-password")

    celery_worker.send_email_async.run("ops@taskhub.io", "Weekly report", "All green")

    (server,) = FakeSMTP.instances
    assert server.address == (config.SMTP_SERVER, config.SMTP_PORT)
    assert server.calls == ["starttls", "login", "quit"]
    (message,) = server.messages
    assert message["To"] == "ops@taskhub.io"
    assert message["Subject"] == "Weekly report"
    assert message.get_content().strip() == "All green"


def test_email_without_password_skips_login(monkeypatch) -> None:
    FakeSMTP.instances = []
    monkeypatch.setattr(email_utils.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(config, "SMTP_PASSWORD", "")

    email_utils.send_email_smtp("ops@taskhub.io", "Hello", "Body")

    assert FakeSMTP.instances[0].calls == ["starttls", "quit"]
