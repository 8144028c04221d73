# tests/test_team_service.py

from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from taskhub import models, schemas
from taskhub.enums import MembershipRole, TaskStatus
from taskhub.exceptions import (
    CannotChangeOwnerRole,
    CannotRemoveOwner,
    Conflict,
    NewOwnerMustBeMember,
    NotAMember,
    PermissionDenied,
    SomeUsersNotFound,
    TeamHasActiveTasks,
    ValidationError,
)
from taskhub.team_service import TeamService, guarded_atomic

from .fakes import FakeNotifications


def _owner_rows(team: models.Team) -> list[int]:
    return [m.user_id for m in team.memberships if m.role == MembershipRole.OWNER]


def test_create_team_makes_actor_owner(team, manager, alice, notifications) -> None:
    assert team.owner_id == manager.id
    assert _owner_rows(team) == [manager.id]
    assert team.membership_for(alice.id).role == MembershipRole.MEMBER
    assert notifications.invitations == [(team.id, alice.id, manager.id)]


def test_create_team_ignores_actor_in_member_list(teams, manager, alice) -> None:
    team = teams.create_team(manager, schemas.TeamCreate(name="Infra", member_ids=[manager.id, alice.id, alice.id]))
    assert sorted(m.user_id for m in team.memberships) == sorted([manager.id, alice.id])
    assert _owner_rows(team) == [manager.id]


def test_create_team_with_unknown_members_writes_nothing(db, teams, manager, alice) -> None:
    with pytest.raises(SomeUsersNotFound) as excinfo:
        teams.create_team(manager, schemas.TeamCreate(name="Ghosts", member_ids=[alice.id, 777, 778]))
    assert excinfo.value.missing_ids == [777, 778]
    assert db.query(models.Team).filter(models.Team.name == "Ghosts").count() == 0


def test_create_team_needs_permission(teams, alice) -> None:
    with pytest.raises(PermissionDenied):
        teams.create_team(alice, schemas.TeamCreate(name="Nope"))


def test_team_names_are_unique(teams, team, manager) -> None:
    with pytest.raises(ValidationError):
        teams.create_team(manager, schemas.TeamCreate(name=team.name))


def test_update_team_bumps_version(teams, team, manager) -> None:
    version = team.version
    team = teams.update_team(team, manager, schemas.TeamUpdate(description="Core services"))
    assert team.description == "Core services"
    assert team.version == version + 1


@pytest.mark.parametrize("field", ["name", "color", "is_active"])
def test_update_team_rejects_null_required_field(db, teams, team, manager, field) -> None:
    version = team.version
    with pytest.raises(ValidationError, match=f"{field} cannot be null"):
        teams.update_team(team, manager, schemas.TeamUpdate(**{field: None}))

    db.refresh(team)
    assert team.version == version
    assert team.name == "Platform"


def test_update_team_clears_nullable_field(teams, team, manager) -> None:
    teams.update_team(team, manager, schemas.TeamUpdate(description="Core"))
    team = teams.update_team(team, manager, schemas.TeamUpdate(description=None))
    assert team.description is None


# Roster


def test_add_members_skips_existing(teams, team, manager, alice, bob, notifications) -> None:
    added = teams.add_members(team, manager, [alice.id, bob.id])

    assert [u.id for u in added] == [bob.id]
    assert team.has_member(bob.id)
    assert notifications.invitations[-1] == (team.id, bob.id, manager.id)


def test_add_unknown_member_fails(teams, team, manager) -> None:
    with pytest.raises(SomeUsersNotFound):
        teams.add_members(team, manager, [31337])


def test_plain_member_cannot_manage_roster(teams, team, alice, bob) -> None:
    with pytest.raises(PermissionDenied):
        teams.add_members(team, alice, [bob.id])


def test_team_admin_can_manage_roster(teams, team, manager, make_user, bob) -> None:
    deputy = make_user("manager")
    teams.add_members(team, manager, [deputy.id])
    with pytest.raises(PermissionDenied):
        teams.add_members(team, deputy, [bob.id])

    teams.change_member_role(team, manager, deputy.id, MembershipRole.ADMIN)
    assert [u.id for u in teams.add_members(team, deputy, [bob.id])] == [bob.id]


def test_remove_members_keeps_owner(teams, team, manager, alice, bob) -> None:
    teams.add_members(team, manager, [bob.id])

    removed = teams.remove_members(team, manager, [manager.id, alice.id, bob.id])

    assert removed == sorted([alice.id, bob.id])
    assert [m.user_id for m in team.memberships] == [manager.id]
    assert _owner_rows(team) == [manager.id]


def test_removing_only_the_owner_fails(teams, team, manager) -> None:
    with pytest.raises(CannotRemoveOwner):
        teams.remove_members(team, manager, [manager.id])
    assert team.has_member(manager.id)


def test_change_member_role(teams, team, manager, alice) -> None:
    membership = teams.change_member_role(team, manager, alice.id, MembershipRole.LEAD)
    assert membership.role == MembershipRole.LEAD


def test_change_role_of_non_member(teams, team, manager, bob) -> None:
    with pytest.raises(NotAMember):
        teams.change_member_role(team, manager, bob.id, MembershipRole.LEAD)


def test_change_role_of_owner(teams, team, manager) -> None:
    with pytest.raises(CannotChangeOwnerRole):
        teams.change_member_role(team, manager, manager.id, MembershipRole.MEMBER)


def test_owner_role_only_through_transfer(teams, team, manager, alice) -> None:
    with pytest.raises(ValidationError):
        teams.change_member_role(team, manager, alice.id, MembershipRole.OWNER)
    assert _owner_rows(team) == [manager.id]


# Ownership


def test_transfer_ownership(teams, team, manager, make_user) -> None:
    successor = make_user("manager")
    teams.add_members(team, manager, [successor.id])

    team = teams.transfer_ownership(team, manager, successor.id)

    assert team.owner_id == successor.id
    assert _owner_rows(team) == [successor.id]
    assert team.membership_for(manager.id).role == MembershipRole.MEMBER


def test_transfer_to_non_member(teams, team, manager, bob) -> None:
    with pytest.raises(NewOwnerMustBeMember):
        teams.transfer_ownership(team, manager, bob.id)
    assert team.owner_id == manager.id


def test_transfer_without_permission_leaves_owner(teams, team, manager, alice) -> None:
    with pytest.raises(PermissionDenied):
        teams.transfer_ownership(team, alice, alice.id)
    assert team.owner_id == manager.id
    assert _owner_rows(team) == [manager.id]


def test_transfer_to_current_owner_is_noop(teams, team, manager) -> None:
    version = team.version
    team = teams.transfer_ownership(team, manager, manager.id)
    assert team.owner_id == manager.id
    assert team.version == version


def test_stale_write_becomes_conflict(db) -> None:
    with pytest.raises(Conflict):
        with guarded_atomic(db):
            raise StaleDataError("UPDATE statement on table 'teams' expected to update 1 row(s)")


def test_concurrent_transfers_leave_one_owner(engine, db, teams, team, manager, alice, bob) -> None:
    teams.add_members(team, manager, [bob.id])

    other = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        stale_team = other.get(models.Team, team.id)
        stale_actor = other.get(models.User, manager.id)
        assert stale_team.has_member(bob.id)
        assert stale_actor.has_permission("teams.transfer_ownership")

        teams.transfer_ownership(team, manager, alice.id)

        with pytest.raises(Conflict):
            TeamService(other, notifications=FakeNotifications()).transfer_ownership(stale_team, stale_actor, bob.id)
    finally:
        other.close()

    db.expire_all()
    team = db.get(models.Team, team.id)
    assert team.owner_id == alice.id
    owners = db.query(models.TeamMembership).filter(
        models.TeamMembership.team_id == team.id,
        models.TeamMembership.role == MembershipRole.OWNER,
    ).all()
    assert [m.user_id for m in owners] == [alice.id]


# Deletion


def _team_task(db, team, creator, status: TaskStatus) -> models.Task:
    task = models.Task(title="Migrate", created_by=creator.id, team_id=team.id)
    task.apply_status(status)
    db.add(task)
    db.commit()
    return task


def test_delete_team_with_open_tasks(db, teams, team, manager) -> None:
    _team_task(db, team, manager, TaskStatus.CANCELLED)
    with pytest.raises(TeamHasActiveTasks):
        teams.delete_team(team, manager)
    assert db.get(models.Team, team.id) is not None


def test_delete_team_detaches_completed_tasks(db, teams, team, manager) -> None:
    task = _team_task(db, team, manager, TaskStatus.COMPLETED)
    team_id = team.id

    teams.delete_team(team, manager)

    assert db.get(models.Team, team_id) is None
    assert db.query(models.TeamMembership).filter(models.TeamMembership.team_id == team_id).count() == 0
    db.refresh(task)
    assert task.team_id is None


def test_team_can_be_deleted_once_its_work_is_done(db, tasks, teams, team, manager) -> None:
    task = tasks.create_task(manager, schemas.TaskCreate(title="Cut release", team_id=team.id))
    tasks.mark_in_progress(task, manager)

    with pytest.raises(TeamHasActiveTasks):
        teams.delete_team(team, manager)

    tasks.mark_completed(task, manager)
    team_id = team.id
    teams.delete_team(team, manager)

    assert db.get(models.Team, team_id) is None
    db.refresh(task)
    assert task.status == TaskStatus.COMPLETED
    assert task.team_id is None


def test_member_cannot_delete_team(teams, team, alice) -> None:
    with pytest.raises(PermissionDenied):
        teams.delete_team(team, alice)


# Reads


def test_get_teams_scoped_to_membership(teams, team, alice, bob, admin) -> None:
    filters = schemas.TeamFilters()
    assert [t.id for t in teams.get_teams(alice, filters).items] == [team.id]
    assert teams.get_teams(bob, filters).items == []
    assert teams.get_teams(admin, filters).total == 1


def test_team_stats(teams, team, manager) -> None:
    teams.create_team(manager, schemas.TeamCreate(name="Dormant", is_active=False))
    assert teams.get_team_stats(manager) == {"total": 2, "active": 1, "inactive": 1}
