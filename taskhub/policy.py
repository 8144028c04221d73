"""
Access policy.

Every mutating and read path asks the same question, ``can_perform(actor,
action, target)``. Actions are permission slugs. The decision is made in two
steps:

1. global gate: the actor is active and one of their roles grants the slug;
2. entity gate: ownership/membership rules for the concrete target, only
   evaluated once the global gate has passed.

Nothing here touches the session; the functions only read attributes that are
already on the ORM objects.
"""
from dataclasses import dataclass
from typing import Optional

from . import models
from .enums import TASK_EDITOR_ROLE_SLUGS
from .exceptions import PermissionDenied

# Permission slugs
TASKS_READ = "tasks.read"
TASKS_CREATE = "tasks.create"
TASKS_UPDATE = "tasks.update"
TASKS_DELETE = "tasks.delete"
TASKS_ASSIGN = "tasks.assign"

TEAMS_READ = "teams.read"
TEAMS_CREATE = "teams.create"
TEAMS_UPDATE = "teams.update"
TEAMS_DELETE = "teams.delete"
TEAMS_MANAGE_MEMBERS = "teams.manage_members"
TEAMS_TRANSFER_OWNERSHIP = "teams.transfer_ownership"

CATEGORIES_READ = "categories.read"
CATEGORIES_MANAGE = "categories.manage"

ROLES_READ = "roles.read"
ROLES_MANAGE = "roles.manage"

USERS_READ = "users.read"
USERS_MANAGE = "users.manage"

DASHBOARD_READ = "dashboard.read"
REPORTS_READ = "reports.read"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self):
        return self.allowed


ALLOW = Decision(True)


def deny(reason: str) -> Decision:
    return Decision(False, reason)


def is_team_member(actor: models.User, team: models.Team) -> bool:
    return team is not None and team.has_member(actor.id)


def can_view_task(actor: models.User, task: models.Task) -> bool:
    return (
        actor.is_admin
        or task.created_by == actor.id
        or task.assigned_to == actor.id
        or (task.team_id is not None and task.team_id in actor.team_ids)
    )


def can_edit_task(actor: models.User, task: models.Task) -> bool:
    return (
        task.created_by == actor.id
        or task.assigned_to == actor.id
        or actor.has_any_role(TASK_EDITOR_ROLE_SLUGS)
    )


def can_delete_task(actor: models.User, task: models.Task) -> bool:
    return task.created_by == actor.id or actor.is_admin


def _task_gate(actor, action, task):
    if action == TASKS_READ:
        return ALLOW if can_view_task(actor, task) else deny("You do not have access to this task")
    if action == TASKS_DELETE:
        return ALLOW if can_delete_task(actor, task) else deny("You cannot delete this task")
    return ALLOW if can_edit_task(actor, task) else deny("You cannot edit this task")


def _team_gate(actor, action, team):
    if action == TEAMS_READ:
        if actor.is_admin or team.has_member(actor.id):
            return ALLOW
        return deny("You do not have access to this team")
    if team.can_be_managed_by(actor):
        return ALLOW
    return deny("You cannot manage this team")


def _category_gate(actor, action, category):
    if category.created_by == actor.id or actor.is_admin:
        return ALLOW
    return deny("You do not have access to this category")


def _role_gate(actor, action, role):
    if action == ROLES_MANAGE and role.is_system:
        return deny("System roles cannot be modified")
    return ALLOW


def _user_gate(actor, action, user):
    if actor.is_admin or user.id == actor.id:
        return ALLOW
    if action == USERS_READ and actor.team_ids & user.team_ids:
        return ALLOW
    if action == USERS_READ:
        return deny("You do not have access to this user")
    return deny("You cannot edit this user")


_ENTITY_GATES = {
    models.Task: _task_gate,
    models.Team: _team_gate,
    models.Category: _category_gate,
    models.Role: _role_gate,
    models.User: _user_gate,
}


def can_perform(actor: models.User, action: str, target=None) -> Decision:
    if actor is None or not actor.is_active:
        return deny("Inactive or unknown user")

    if not actor.has_permission(action):
        return deny(f"Missing permission '{action}'")

    if target is None:
        return ALLOW

    gate = _ENTITY_GATES.get(type(target))
    if gate is None:
        return ALLOW
    return gate(actor, action, target)


def authorize(actor: models.User, action: str, target=None) -> None:
    """Raise PermissionDenied carrying the denial reason."""
    decision = can_perform(actor, action, target)
    if not decision:
        raise PermissionDenied(decision.reason)
