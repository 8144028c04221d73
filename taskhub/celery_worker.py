from celery import Celery
from celery.schedules import crontab

from . import config
from .logging_setup import setup_logging

celery = Celery("worker", broker=config.CELERY_BROKER_URL, backend=config.CELERY_BACKEND_URL)

# Scheduled runs are triggered by celery beat; the service itself never loops.
celery.conf.beat_schedule = {
    "overdue-task-notifications": {
        "task": "taskhub.celery_worker.send_overdue_task_notifications",
        "schedule": crontab(hour=8, minute=0),
    },
    "daily-task-summaries": {
        "task": "taskhub.celery_worker.send_daily_summaries",
        "schedule": crontab(hour=7, minute=0),
    },
    "weekly-team-reports": {
        "task": "taskhub.celery_worker.send_weekly_team_reports",
        "schedule": crontab(hour=9, minute=0, day_of_week="mon"),
    },
}


@celery.on_after_configure.connect
def _configure_logging(sender, **kwargs):
    setup_logging(config.LOG_LEVEL)


@celery.task
def send_email_async(to_email: str, subject: str, body: str):
    from taskhub.email_utils import send_email_smtp
    send_email_smtp(to_email, subject, body)


@celery.task
def send_overdue_task_notifications():
    from taskhub.database import SessionLocal
    from taskhub.notification_service import NotificationService
    db = SessionLocal()
    try:
        return NotificationService(db).notify_overdue_tasks()
    finally:
        db.close()


@celery.task
def send_daily_summaries():
    from taskhub.database import SessionLocal
    from taskhub import models
    from taskhub.notification_service import NotificationService
    db = SessionLocal()
    try:
        service = NotificationService(db)
        users = db.query(models.User).filter(models.User.is_active.is_(True)).all()
        for user in users:
            service.notify_daily_summary(user)
        return len(users)
    finally:
        db.close()


@celery.task
def send_weekly_team_reports():
    from taskhub.database import SessionLocal
    from taskhub import models
    from taskhub.notification_service import NotificationService
    db = SessionLocal()
    try:
        service = NotificationService(db)
        teams = db.query(models.Team).filter(models.Team.is_active.is_(True)).all()
        for team in teams:
            service.notify_weekly_report(team)
        return len(teams)
    finally:
        db.close()
