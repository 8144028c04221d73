"""
Notification stubs.

Every public method is fire-and-forget: errors are logged here and never reach
the caller, so a failed notification cannot undo the mutation that caused it.
Delivery itself is delegated to ``email_utils.dispatch_email``.
"""
import logging
from collections import Counter

from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import email_utils, models
from .enums import TaskStatus
from .timeutils import today, utcnow, week_bounds

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def notify_assignment(self, task: models.Task, assignee: models.User):
        try:
            email_utils.dispatch_email(
                assignee.email,
                "Task Assigned",
                f"You have been assigned task: {task.title}",
            )
            logger.info("Task assignment notification sent (task_id=%s, assignee_id=%s)", task.id, assignee.id)
        except Exception:
            logger.exception(
                "Failed to send task assignment notification (task_id=%s, assignee_id=%s)", task.id, assignee.id
            )

    def notify_status_change(self, task: models.Task, old_status, new_status, actor: models.User = None):
        """Tell the creator, the assignee and the task's team, minus whoever made the change.

        Returns the ids of the notified users, or an empty list if sending failed.
        """
        try:
            old_status, new_status = TaskStatus(old_status), TaskStatus(new_status)
            actor_id = actor.id if actor is not None else None

            recipients = {}
            candidates = [task.creator, task.assignee]
            if task.team is not None:
                candidates.extend(task.team.members)
            for user in candidates:
                if user is not None and user.id != actor_id:
                    recipients.setdefault(user.id, user)

            for user in recipients.values():
                email_utils.dispatch_email(
                    user.email,
                    "Task Status Updated",
                    f"Status of task '{task.title}' changed from {old_status.label} to {new_status.label}",
                )
            logger.info(
                "Status change notification sent (task_id=%s, %s -> %s, recipients=%s)",
                task.id, old_status.value, new_status.value, sorted(recipients),
            )
            return sorted(recipients)
        except Exception:
            logger.exception(
                "Failed to send task status change notification (task_id=%s, old_status=%s, new_status=%s)",
                task.id, old_status, new_status,
            )
            return []

    def notify_overdue_tasks(self) -> int:
        """Notify the assignee (or the creator) of every overdue open task. Returns how many were sent."""
        try:
            overdue_tasks = self.db.query(models.Task).filter(
                models.Task.due_date < today(),
                models.Task.status.notin_([TaskStatus.COMPLETED, TaskStatus.CANCELLED]),
            ).all()
            sent = 0
            for task in overdue_tasks:
                recipient = task.assignee or task.creator
                if recipient is None:
                    continue
                email_utils.dispatch_email(
                    recipient.email,
                    "Task Overdue",
                    f"Task '{task.title}' was due on {task.due_date.isoformat()}",
                )
                sent += 1
            logger.info("Overdue task notifications sent (count=%s)", sent)
            return sent
        except Exception:
            logger.exception("Failed to send overdue task notifications")
            return 0

    def notify_team_invitation(self, team: models.Team, invited_user: models.User, invited_by: models.User):
        try:
            email_utils.dispatch_email(
                invited_user.email,
                "Team Invitation",
                f"{invited_by.name} added you to the team '{team.name}'",
            )
            logger.info(
                "Team invitation notification sent (team_id=%s, invited_user_id=%s, invited_by_id=%s)",
                team.id, invited_user.id, invited_by.id,
            )
        except Exception:
            logger.exception(
                "Failed to send team invitation notification (team_id=%s, invited_user_id=%s)",
                team.id, invited_user.id,
            )

    def notify_daily_summary(self, user: models.User):
        """Summary of the user's tasks due today. Returns the summary dict, or None on failure."""
        try:
            due_today = self.db.query(models.Task).filter(
                or_(models.Task.created_by == user.id, models.Task.assigned_to == user.id),
                models.Task.due_date == today(),
            ).all()
            counts = Counter(t.status for t in due_today)
            summary = {
                "total_tasks": len(due_today),
                "completed_tasks": counts[TaskStatus.COMPLETED],
                "pending_tasks": counts[TaskStatus.PENDING],
                "in_progress_tasks": counts[TaskStatus.IN_PROGRESS],
                "titles": [t.title for t in due_today[:5]],
            }
            body = "Tasks due today:\n" + "\n".join(summary["titles"]) if due_today else "No tasks due today."
            email_utils.dispatch_email(user.email, "Daily Task Summary", body)
            logger.info("Daily task summary sent (user_id=%s, total=%s)", user.id, summary["total_tasks"])
            return summary
        except Exception:
            logger.exception("Failed to send daily task summary (user_id=%s)", user.id)
            return None

    def notify_weekly_report(self, team: models.Team):
        """Weekly statistics sent to every member of the team. Returns the stats, or None on failure."""
        try:
            week_start, week_end = week_bounds()
            tasks = team.tasks
            created_this_week = [t for t in tasks if week_start <= t.created_at < week_end]
            member_ids = {m.user_id for m in team.memberships}
            activity = Counter(t.created_by for t in created_this_week if t.created_by in member_ids)
            most_active = None
            if activity:
                user_id, count = activity.most_common(1)[0]
                most_active = {"id": user_id, "tasks_created": count}

            stats = {
                "total_tasks": len(created_this_week),
                "completed_tasks": sum(
                    1 for t in tasks if t.completed_at is not None and week_start <= t.completed_at < week_end
                ),
                "overdue_tasks": sum(1 for t in tasks if t.is_overdue),
                "team_members": len(member_ids),
                "most_active_member": most_active,
                "generated_at": utcnow().isoformat(),
            }
            body = (
                f"Weekly report for {team.name}: {stats['total_tasks']} created, "
                f"{stats['completed_tasks']} completed, {stats['overdue_tasks']} overdue"
            )
            for member in team.members:
                email_utils.dispatch_email(member.email, f"Weekly Report: {team.name}", body)
            logger.info("Weekly team report sent (team_id=%s, members=%s)", team.id, stats["team_members"])
            return stats
        except Exception:
            logger.exception("Failed to send weekly team report (team_id=%s)", team.id)
            return None
