"""
Dashboard aggregates.

Every number here is computed over the rows the actor can see: the same
visibility predicates the list endpoints use are applied before counting.
"""
from datetime import date, datetime, timedelta

from sqlalchemy import extract, func
from sqlalchemy.orm import Session

from . import filters, models, policy
from .enums import TaskPriority, TaskStatus
from .exceptions import PermissionDenied
from .task_service import TaskService
from .timeutils import today

RECENT_TASKS_LIMIT = 5
UPCOMING_DAYS = 7
UPCOMING_LIMIT = 10
SUMMARY_MONTHS = 6

CLOSED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


def first_of_month(day: date, months_back: int = 0) -> date:
    index = day.year * 12 + day.month - 1 - months_back
    return date(index // 12, index % 12 + 1, 1)


class DashboardService:
    def __init__(self, db: Session, tasks: TaskService = None):
        self.db = db
        self.tasks = tasks or TaskService(db)

    def overview(self, actor: models.User) -> dict:
        policy.authorize(actor, policy.DASHBOARD_READ)
        start = today()

        recent = (
            self._visible_tasks(actor)
            .order_by(models.Task.created_at.desc(), models.Task.id.desc())
            .limit(RECENT_TASKS_LIMIT)
            .all()
        )
        upcoming = (
            self._visible_tasks(actor)
            .filter(
                models.Task.due_date >= start,
                models.Task.due_date <= start + timedelta(days=UPCOMING_DAYS),
                models.Task.status.notin_(CLOSED_STATUSES),
            )
            .order_by(models.Task.due_date, models.Task.id)
            .limit(UPCOMING_LIMIT)
            .all()
        )
        return {
            "task_stats": self.tasks.get_task_stats(actor),
            "recent_tasks": recent,
            "upcoming_deadlines": upcoming,
            "team_stats": self._team_sizes(actor),
        }

    def tasks_summary(self, actor: models.User) -> dict:
        """Counts by status, by priority and by creation month (oldest month first)."""
        policy.authorize(actor, policy.DASHBOARD_READ)

        by_status = {status.value: 0 for status in TaskStatus}
        for status, count in self._count_by(actor, models.Task.status):
            by_status[TaskStatus(status).value] = count

        by_priority = {priority.value: 0 for priority in TaskPriority}
        for priority, count in self._count_by(actor, models.Task.priority):
            by_priority[TaskPriority(priority).value] = count

        return {"by_status": by_status, "by_priority": by_priority, "by_month": self._by_month(actor)}

    def team_performance(self, actor: models.User) -> list:
        policy.authorize(actor, policy.DASHBOARD_READ)
        if not (actor.is_admin or actor.has_role("manager")):
            raise PermissionDenied("Team performance is only available to administrators and managers")

        query = self.db.query(models.Team)
        visibility = filters.team_visibility(actor)
        if visibility is not None:
            query = query.filter(visibility)

        performance = []
        for team in query.order_by(models.Team.name).all():
            tasks = team.tasks
            performance.append({
                "id": team.id,
                "name": team.name,
                "total_tasks": len(tasks),
                "completed_tasks": sum(1 for t in tasks if t.is_completed),
                "overdue_tasks": sum(1 for t in tasks if t.is_overdue),
                "completion_rate": team.completion_percentage,
                "member_count": len(team.memberships),
            })
        return performance

    # HELPERS

    def _visible_tasks(self, actor: models.User, *columns):
        query = self.db.query(*columns) if columns else self.db.query(models.Task)
        visibility = filters.task_visibility(actor)
        if visibility is not None:
            query = query.filter(visibility)
        return query

    def _count_by(self, actor: models.User, column):
        return self._visible_tasks(actor, column, func.count(models.Task.id)).group_by(column).all()

    def _by_month(self, actor: models.User) -> list:
        start = first_of_month(today(), SUMMARY_MONTHS - 1)
        year = extract("year", models.Task.created_at)
        month = extract("month", models.Task.created_at)

        query = self._visible_tasks(actor, year, month, func.count(models.Task.id)).filter(
            models.Task.created_at >= datetime(start.year, start.month, 1)
        )
        counts = {(int(y), int(m)): count for y, m, count in query.group_by(year, month).all()}

        months = [first_of_month(today(), back) for back in range(SUMMARY_MONTHS - 1, -1, -1)]
        return [
            {"year": m.year, "month": m.month, "count": counts.get((m.year, m.month), 0)}
            for m in months
        ]

    def _team_sizes(self, actor: models.User) -> dict:
        query = (
            self.db.query(models.Team.id, models.Team.name, func.count(models.TeamMembership.id))
            .outerjoin(models.Team.memberships)
        )
        visibility = filters.team_visibility(actor)
        if visibility is not None:
            query = query.filter(visibility)
        rows = query.group_by(models.Team.id, models.Team.name).order_by(models.Team.name).all()
        return {
            "total_teams": len(rows),
            "teams": [{"id": team_id, "name": name, "member_count": count} for team_id, name, count in rows],
        }
