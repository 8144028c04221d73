"""
Query building for list endpoints.

A list query is assembled from three parts, in this order:

* a visibility predicate derived from the access policy (``None`` for global
  admins), so rows the actor may not see are never fetched;
* one predicate per filter that is present, built by small functions keyed by
  filter name;
* an ordering restricted to an allow-list of sortable columns.
"""
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import case, or_, select
from sqlalchemy.orm import Query, Session

from . import config
from .enums import TaskPriority
from .exceptions import ValidationError
from .models import Category, Task, Team, TeamMembership, User


@dataclass
class Page:
    items: List[Any]
    total: int
    current_page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))


def _member_team_ids(user_id: int):
    return select(TeamMembership.team_id).where(TeamMembership.user_id == user_id)


# Visibility

def task_visibility(actor: User):
    if actor.is_admin:
        return None
    return or_(
        Task.created_by == actor.id,
        Task.assigned_to == actor.id,
        Task.team_id.in_(_member_team_ids(actor.id)),
    )


def team_visibility(actor: User):
    if actor.is_admin:
        return None
    return Team.id.in_(_member_team_ids(actor.id))


def category_visibility(actor: User):
    if actor.is_admin:
        return None
    return Category.created_by == actor.id


# Filter predicates

def _equals(column) -> Callable:
    return lambda value: column == value


def _substring(*columns) -> Callable:
    return lambda value: or_(*[col.icontains(value, autoescape=True) for col in columns])


TASK_FILTERS: Dict[str, Callable] = {
    "status": _equals(Task.status),
    "priority": _equals(Task.priority),
    "category_id": _equals(Task.category_id),
    "team_id": _equals(Task.team_id),
    "assigned_to": _equals(Task.assigned_to),
    "search": _substring(Task.title, Task.description),
}

TEAM_FILTERS: Dict[str, Callable] = {
    "is_active": _equals(Team.is_active),
    "owner_id": _equals(Team.owner_id),
    "search": _substring(Team.name, Team.description),
}

CATEGORY_FILTERS: Dict[str, Callable] = {
    "is_active": _equals(Category.is_active),
    "search": _substring(Category.name),
}


def build_predicates(filters, table: Dict[str, Callable]) -> list:
    """One predicate per filter that was given; missing filters constrain nothing."""
    predicates = []
    for name, build in table.items():
        value = getattr(filters, name, None)
        if value is None or value == "":
            continue
        predicates.append(build(value))
    return predicates


# Sorting

_PRIORITY_WEIGHT = case(*[(Task.priority == p, p.weight) for p in TaskPriority], else_=0)

TASK_SORT_FIELDS = {
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
    "due_date": Task.due_date,
    "priority": _PRIORITY_WEIGHT,
    "status": Task.status,
    "title": Task.title,
    "completed_at": Task.completed_at,
}

TEAM_SORT_FIELDS = {
    "created_at": Team.created_at,
    "name": Team.name,
    "updated_at": Team.updated_at,
}

CATEGORY_SORT_FIELDS = {
    "created_at": Category.created_at,
    "name": Category.name,
}


def order_clause(sort_fields: Dict[str, Any], sort_by: str, sort_order: str):
    if sort_by not in sort_fields:
        allowed = ", ".join(sorted(sort_fields))
        raise ValidationError(f"Cannot sort by '{sort_by}'; allowed fields: {allowed}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be 'asc' or 'desc'")
    col = sort_fields[sort_by]
    return col.desc() if sort_order == "desc" else col.asc()


def scoped_query(db: Session, model, visibility, predicates: list, ordering) -> Query:
    q = db.query(model)
    if visibility is not None:
        q = q.filter(visibility)
    for predicate in predicates:
        q = q.filter(predicate)
    # id as tie-breaker keeps pages stable
    return q.order_by(ordering, model.id.desc())


def task_query(db: Session, actor: User, filters) -> Query:
    return scoped_query(
        db,
        Task,
        task_visibility(actor),
        build_predicates(filters, TASK_FILTERS),
        order_clause(TASK_SORT_FIELDS, filters.sort_by or "created_at", filters.sort_order or "desc"),
    )


def team_query(db: Session, actor: User, filters) -> Query:
    return scoped_query(
        db,
        Team,
        team_visibility(actor),
        build_predicates(filters, TEAM_FILTERS),
        order_clause(TEAM_SORT_FIELDS, filters.sort_by or "created_at", filters.sort_order or "desc"),
    )


def category_query(db: Session, actor: User, filters) -> Query:
    return scoped_query(
        db,
        Category,
        category_visibility(actor),
        build_predicates(filters, CATEGORY_FILTERS),
        order_clause(CATEGORY_SORT_FIELDS, filters.sort_by or "name", filters.sort_order or "asc"),
    )


def paginate(query: Query, page: Optional[int] = 1, per_page: Optional[int] = None) -> Page:
    per_page = per_page or config.DEFAULT_PER_PAGE
    if per_page < 1 or per_page > config.MAX_PER_PAGE:
        raise ValidationError(f"per_page must be between 1 and {config.MAX_PER_PAGE}")
    page = page or 1
    if page < 1:
        raise ValidationError("page must be 1 or greater")
    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return Page(items=items, total=total, current_page=page, per_page=per_page)
