"""
Task lifecycle.

Status moves go through two kinds of entry points:

* the dedicated ``mark_*``/``reopen`` operations, which reject a move to the
  current state with AlreadyInState and check the transition table;
* ``update_task``, the generic field update, which accepts any status so that
  editors can correct mistakes. It still keeps ``completed_at`` consistent.
"""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import crud, filters, models, policy, schemas
from .database import atomic
from .enums import TaskPriority, TaskStatus
from .exceptions import AlreadyInState, InvalidTransition, TeamAccessDenied
from .notification_service import NotificationService
from .timeutils import today

logger = logging.getLogger(__name__)

# Completing a pending task starts it on the way; every other move is a single step.
FAST_FORWARD = {
    (TaskStatus.PENDING, TaskStatus.COMPLETED): TaskStatus.IN_PROGRESS,
}

NON_NULLABLE_FIELDS = ("title", "status", "priority")


def check_transition(current: TaskStatus, target: TaskStatus) -> None:
    via = FAST_FORWARD.get((current, target))
    if via is not None and current.can_transition_to(via) and via.can_transition_to(target):
        return
    if not current.can_transition_to(target):
        raise InvalidTransition(f"Cannot move a task from '{current.value}' to '{target.value}'")


class TaskService:
    def __init__(self, db: Session, notifications: NotificationService = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # READ

    def get_tasks(self, actor: models.User, task_filters: schemas.TaskFilters) -> filters.Page:
        policy.authorize(actor, policy.TASKS_READ)
        query = filters.task_query(self.db, actor, task_filters)
        return filters.paginate(query, task_filters.page, task_filters.per_page)

    def get_task(self, actor: models.User, task_id: int) -> models.Task:
        task = crud.get_or_404(self.db, models.Task, task_id, "Task")
        policy.authorize(actor, policy.TASKS_READ, task)
        return task

    def get_task_stats(self, actor: models.User) -> dict:
        policy.authorize(actor, policy.DASHBOARD_READ)
        visibility = filters.task_visibility(actor)

        by_status = self.db.query(models.Task.status, func.count(models.Task.id))
        overdue = self.db.query(func.count(models.Task.id)).filter(
            models.Task.due_date < today(),
            models.Task.status != TaskStatus.COMPLETED,
        )
        if visibility is not None:
            by_status = by_status.filter(visibility)
            overdue = overdue.filter(visibility)

        counts = {status: 0 for status in TaskStatus}
        for status, count in by_status.group_by(models.Task.status).all():
            counts[TaskStatus(status)] = count
        total = sum(counts.values())
        completed = counts[TaskStatus.COMPLETED]

        return {
            "total": total,
            "pending": counts[TaskStatus.PENDING],
            "in_progress": counts[TaskStatus.IN_PROGRESS],
            "completed": completed,
            "cancelled": counts[TaskStatus.CANCELLED],
            "overdue": overdue.scalar() or 0,
            "completion_rate": round(completed / total * 100, 1) if total else 0.0,
        }

    # WRITE

    def create_task(self, actor: models.User, task: schemas.TaskCreate) -> models.Task:
        policy.authorize(actor, policy.TASKS_CREATE)
        fields = task.model_dump()
        status = fields.pop("status") or TaskStatus.PENDING
        priority = fields.pop("priority") or TaskPriority.MEDIUM

        assignee = self._resolve_assignee(actor, fields.get("assigned_to"))
        self._check_team_access(actor, fields.get("team_id"))
        self._check_category(fields.get("category_id"))

        with atomic(self.db):
            db_task = models.Task(**fields, created_by=actor.id, priority=priority)
            db_task.apply_status(status)
            self.db.add(db_task)
        self.db.refresh(db_task)
        logger.info("Task %s created by user %s", db_task.id, actor.id)

        if assignee is not None and assignee.id != actor.id:
            self.notifications.notify_assignment(db_task, assignee)
        return db_task

    def update_task(self, task: models.Task, actor: models.User, task_update: schemas.TaskUpdate) -> models.Task:
        policy.authorize(actor, policy.TASKS_UPDATE, task)
        fields = task_update.model_dump(exclude_unset=True)
        crud.reject_nulls(fields, NON_NULLABLE_FIELDS)

        new_assignee = None
        if fields.get("assigned_to") is not None and fields["assigned_to"] != task.assigned_to:
            new_assignee = self._resolve_assignee(actor, fields["assigned_to"])
        if fields.get("team_id") is not None and fields["team_id"] != task.team_id:
            self._check_team_access(actor, fields["team_id"])
        if fields.get("category_id") is not None:
            self._check_category(fields["category_id"])

        old_status = task.status
        new_status = fields.pop("status", None)

        with atomic(self.db):
            for field, value in fields.items():
                setattr(task, field, value)
            if new_status is not None and new_status != old_status:
                task.apply_status(new_status)
        self.db.refresh(task)
        logger.info("Task %s updated by user %s (fields=%s)", task.id, actor.id, sorted(fields))

        if new_status is not None and new_status != old_status:
            self.notifications.notify_status_change(task, old_status, new_status, actor)
        if new_assignee is not None and new_assignee.id != actor.id:
            self.notifications.notify_assignment(task, new_assignee)
        return task

    def delete_task(self, task: models.Task, actor: models.User) -> None:
        policy.authorize(actor, policy.TASKS_DELETE, task)
        task_id = task.id
        with atomic(self.db):
            self.db.delete(task)
        logger.info("Task %s deleted by user %s", task_id, actor.id)

    def mark_completed(self, task: models.Task, actor: models.User) -> models.Task:
        return self._move(task, actor, TaskStatus.COMPLETED)

    def mark_in_progress(self, task: models.Task, actor: models.User) -> models.Task:
        return self._move(task, actor, TaskStatus.IN_PROGRESS)

    def mark_cancelled(self, task: models.Task, actor: models.User) -> models.Task:
        return self._move(task, actor, TaskStatus.CANCELLED)

    def reopen(self, task: models.Task, actor: models.User) -> models.Task:
        return self._move(task, actor, TaskStatus.PENDING)

    def _move(self, task: models.Task, actor: models.User, target: TaskStatus) -> models.Task:
        policy.authorize(actor, policy.TASKS_UPDATE, task)
        old_status = TaskStatus(task.status)
        if old_status is target:
            raise AlreadyInState(f"Task is already {target.label.lower()}")
        check_transition(old_status, target)

        with atomic(self.db):
            task.apply_status(target)
        self.db.refresh(task)
        logger.info("Task %s moved %s -> %s by user %s", task.id, old_status.value, target.value, actor.id)

        self.notifications.notify_status_change(task, old_status, target, actor)
        return task

    # HELPERS

    def _resolve_assignee(self, actor: models.User, assigned_to):
        if assigned_to is None:
            return None
        if assigned_to != actor.id:
            policy.authorize(actor, policy.TASKS_ASSIGN)
        return crud.get_or_404(self.db, models.User, assigned_to, "User")

    def _check_team_access(self, actor: models.User, team_id):
        if team_id is None:
            return
        team = self.db.get(models.Team, team_id)
        if team is None or not (actor.is_admin or policy.is_team_member(actor, team)):
            raise TeamAccessDenied()

    def _check_category(self, category_id):
        if category_id is not None:
            crud.get_or_404(self.db, models.Category, category_id, "Category")
