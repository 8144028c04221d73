# tests/test_task_service.py

from __future__ import annotations

from datetime import timedelta

import pytest

from taskhub import models, schemas
from taskhub.enums import TaskPriority, TaskStatus
from taskhub.exceptions import (
    AlreadyInState,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    TeamAccessDenied,
    ValidationError,
)
from taskhub.task_service import check_transition
from taskhub.timeutils import today


def _create(tasks, actor, **fields) -> models.Task:
    return tasks.create_task(actor, schemas.TaskCreate(title=fields.pop("title", "Ship release"), **fields))


# Creation


def test_create_task_applies_defaults(tasks, alice) -> None:
    task = _create(tasks, alice)

    assert task.status is TaskStatus.PENDING
    assert task.priority is TaskPriority.MEDIUM
    assert task.created_by == alice.id
    assert task.completed_at is None
    assert task.tags == []


def test_create_completed_task_stamps_completed_at(tasks, alice) -> None:
    task = _create(tasks, alice, status=TaskStatus.COMPLETED)
    assert task.completed_at is not None


def test_viewer_cannot_create(tasks, viewer) -> None:
    with pytest.raises(PermissionDenied):
        _create(tasks, viewer)


def test_assigning_someone_else_needs_assign_permission(tasks, alice, bob) -> None:
    with pytest.raises(PermissionDenied):
        _create(tasks, alice, assigned_to=bob.id)

    own = _create(tasks, alice, assigned_to=alice.id)
    assert own.assigned_to == alice.id


def test_assignment_notifies_assignee(tasks, notifications, manager, alice) -> None:
    task = _create(tasks, manager, assigned_to=alice.id)
    assert notifications.assignments == [(task.id, alice.id)]


def test_unknown_assignee_is_not_found(tasks, manager) -> None:
    with pytest.raises(NotFound):
        _create(tasks, manager, assigned_to=9999)


def test_team_task_requires_membership(tasks, team, bob, alice, admin) -> None:
    with pytest.raises(TeamAccessDenied):
        _create(tasks, bob, team_id=team.id)

    assert _create(tasks, alice, team_id=team.id).team_id == team.id
    assert _create(tasks, admin, team_id=team.id).team_id == team.id


def test_past_due_date_is_rejected() -> None:
    with pytest.raises(ValueError):
        schemas.TaskCreate(title="Late", due_date=today() - timedelta(days=1))


# Lifecycle


def test_mark_completed_from_pending(tasks, notifications, alice) -> None:
    task = _create(tasks, alice)

    task = tasks.mark_completed(task, alice)

    assert task.status is TaskStatus.COMPLETED
    assert task.completed_at is not None
    assert notifications.status_changes == [(task.id, "pending", "completed", alice.id)]


def test_mark_completed_twice_is_already_in_state(tasks, alice) -> None:
    task = tasks.mark_completed(_create(tasks, alice), alice)
    first_stamp = task.completed_at

    with pytest.raises(AlreadyInState):
        tasks.mark_completed(task, alice)
    assert task.completed_at == first_stamp


def test_cancelled_task_cannot_start(tasks, alice) -> None:
    task = tasks.mark_cancelled(_create(tasks, alice), alice)

    with pytest.raises(InvalidTransition):
        tasks.mark_in_progress(task, alice)
    with pytest.raises(InvalidTransition):
        tasks.mark_completed(task, alice)
    assert task.status is TaskStatus.CANCELLED


def test_reopen_cancelled_task(tasks, alice) -> None:
    task = tasks.mark_cancelled(_create(tasks, alice), alice)
    task = tasks.reopen(task, alice)
    assert task.status is TaskStatus.PENDING
    assert task.completed_at is None


def test_restarting_completed_task_clears_completed_at(tasks, alice) -> None:
    task = tasks.mark_completed(_create(tasks, alice), alice)
    task = tasks.mark_in_progress(task, alice)
    assert task.status is TaskStatus.IN_PROGRESS
    assert task.completed_at is None


def test_check_transition_fast_forward_only_from_pending() -> None:
    check_transition(TaskStatus.PENDING, TaskStatus.COMPLETED)
    with pytest.raises(InvalidTransition):
        check_transition(TaskStatus.CANCELLED, TaskStatus.COMPLETED)
    with pytest.raises(InvalidTransition):
        check_transition(TaskStatus.COMPLETED, TaskStatus.CANCELLED)


def test_non_editor_cannot_move_task(tasks, alice, bob) -> None:
    task = _create(tasks, alice)
    with pytest.raises(PermissionDenied):
        tasks.mark_completed(task, bob)


# Generic update


def test_update_task_bypasses_transition_table(tasks, alice) -> None:
    task = tasks.mark_cancelled(_create(tasks, alice), alice)

    task = tasks.update_task(task, alice, schemas.TaskUpdate(status=TaskStatus.COMPLETED))
    assert task.status is TaskStatus.COMPLETED
    assert task.completed_at is not None

    task = tasks.update_task(task, alice, schemas.TaskUpdate(status=TaskStatus.PENDING))
    assert task.completed_at is None


def test_update_task_only_touches_given_fields(tasks, alice) -> None:
    task = _create(tasks, alice, description="keep me", priority=TaskPriority.HIGH)

    task = tasks.update_task(task, alice, schemas.TaskUpdate(title="Renamed"))

    assert task.title == "Renamed"
    assert task.description == "keep me"
    assert task.priority is TaskPriority.HIGH


def test_update_task_rejects_null_title(tasks, alice) -> None:
    task = _create(tasks, alice)
    with pytest.raises(ValidationError, match="title cannot be null"):
        tasks.update_task(task, alice, schemas.TaskUpdate(title=None))


def test_assignee_can_update(tasks, manager, alice) -> None:
    task = _create(tasks, manager, assigned_to=alice.id)
    task = tasks.update_task(task, alice, schemas.TaskUpdate(actual_hours=3))
    assert task.actual_hours == 3


def test_reassignment_notifies_new_assignee(tasks, notifications, manager, alice, bob) -> None:
    task = _create(tasks, manager, assigned_to=alice.id)
    tasks.update_task(task, manager, schemas.TaskUpdate(assigned_to=bob.id))
    assert notifications.assignments[-1] == (task.id, bob.id)


# Delete and read


def test_assignee_cannot_delete(tasks, manager, alice) -> None:
    task = _create(tasks, manager, assigned_to=alice.id)
    with pytest.raises(PermissionDenied):
        tasks.delete_task(task, alice)


def test_creator_deletes_task(db, tasks, alice) -> None:
    task = _create(tasks, alice)
    task_id = task.id
    tasks.delete_task(task, alice)
    assert db.get(models.Task, task_id) is None


def test_get_task_checks_visibility(tasks, alice, bob) -> None:
    task = _create(tasks, alice)
    assert tasks.get_task(alice, task.id).id == task.id
    with pytest.raises(PermissionDenied):
        tasks.get_task(bob, task.id)
    with pytest.raises(NotFound):
        tasks.get_task(alice, 424242)


def test_task_stats(tasks, alice) -> None:
    _create(tasks, alice)
    tasks.mark_completed(_create(tasks, alice), alice)
    tasks.mark_cancelled(_create(tasks, alice), alice)
    tasks.mark_completed(_create(tasks, alice), alice)

    stats = tasks.get_task_stats(alice)

    assert stats["total"] == 4
    assert stats["pending"] == 1
    assert stats["completed"] == 2
    assert stats["cancelled"] == 1
    assert stats["completion_rate"] == 50.0
