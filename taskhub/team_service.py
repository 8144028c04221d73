"""
Team roster and ownership.

Invariant kept by every operation here: exactly one membership row carries the
``owner`` role, and it belongs to ``team.owner_id``.
"""
import logging
from contextlib import contextmanager
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from . import crud, filters, models, policy, schemas
from .database import atomic
from .enums import MembershipRole, TaskStatus
from .exceptions import (
    CannotChangeOwnerRole,
    CannotRemoveOwner,
    Conflict,
    NewOwnerMustBeMember,
    NotAMember,
    TeamHasActiveTasks,
    ValidationError,
)
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

TEAM_REQUIRED_FIELDS = ("name", "color", "is_active")


class TeamService:
    def __init__(self, db: Session, notifications: NotificationService = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # READ

    def get_teams(self, actor: models.User, team_filters: schemas.TeamFilters) -> filters.Page:
        policy.authorize(actor, policy.TEAMS_READ)
        query = filters.team_query(self.db, actor, team_filters)
        return filters.paginate(query, team_filters.page, team_filters.per_page)

    def get_team(self, actor: models.User, team_id: int) -> models.Team:
        team = crud.get_or_404(self.db, models.Team, team_id, "Team")
        policy.authorize(actor, policy.TEAMS_READ, team)
        return team

    def get_team_stats(self, actor: models.User) -> dict:
        policy.authorize(actor, policy.TEAMS_READ)
        query = self.db.query(models.Team.is_active, func.count(models.Team.id))
        visibility = filters.team_visibility(actor)
        if visibility is not None:
            query = query.filter(visibility)
        counts = dict(query.group_by(models.Team.is_active).all())
        active, inactive = counts.get(True, 0), counts.get(False, 0)
        return {"total": active + inactive, "active": active, "inactive": inactive}

    # WRITE

    def create_team(self, actor: models.User, team: schemas.TeamCreate) -> models.Team:
        policy.authorize(actor, policy.TEAMS_CREATE)
        self._check_unique_name(team.name)
        member_ids = [user_id for user_id in dict.fromkeys(team.member_ids) if user_id != actor.id]
        members = crud.get_users_by_ids(self.db, member_ids)

        with atomic(self.db):
            db_team = models.Team(
                name=team.name,
                description=team.description,
                color=team.color or "#3b82f6",
                is_active=team.is_active,
                owner=actor,
            )
            db_team.add_member(actor, MembershipRole.OWNER)
            for member in members:
                db_team.add_member(member, MembershipRole.MEMBER)
            self.db.add(db_team)
        self.db.refresh(db_team)
        logger.info("Team %s created by user %s with %s member(s)", db_team.id, actor.id, len(members) + 1)

        for member in members:
            self.notifications.notify_team_invitation(db_team, member, actor)
        return db_team

    def update_team(self, team: models.Team, actor: models.User, team_update: schemas.TeamUpdate) -> models.Team:
        policy.authorize(actor, policy.TEAMS_UPDATE, team)
        data = team_update.model_dump(exclude_unset=True)
        crud.reject_nulls(data, TEAM_REQUIRED_FIELDS)
        if "name" in data and data["name"] != team.name:
            self._check_unique_name(data["name"])
        with self._guarded():
            for field, value in data.items():
                setattr(team, field, value)
        self.db.refresh(team)
        return team

    def add_members(self, team: models.Team, actor: models.User, user_ids: List[int]) -> List[models.User]:
        """Attach users as plain members; users already on the roster are skipped."""
        policy.authorize(actor, policy.TEAMS_MANAGE_MEMBERS, team)
        users = crud.get_users_by_ids(self.db, user_ids)
        added = [user for user in users if not team.has_member(user.id)]

        with atomic(self.db):
            for user in added:
                team.add_member(user, MembershipRole.MEMBER)
        self.db.refresh(team)
        logger.info("Team %s: user %s added members %s", team.id, actor.id, [u.id for u in added])

        for user in added:
            self.notifications.notify_team_invitation(team, user, actor)
        return added

    def remove_members(self, team: models.Team, actor: models.User, user_ids: List[int]) -> List[int]:
        """Detach users from the team. The owner is silently kept."""
        policy.authorize(actor, policy.TEAMS_MANAGE_MEMBERS, team)
        to_remove = {user_id for user_id in user_ids if user_id != team.owner_id}
        if not to_remove:
            raise CannotRemoveOwner()

        removed = []
        with atomic(self.db):
            for membership in list(team.memberships):
                if membership.user_id in to_remove:
                    team.memberships.remove(membership)
                    removed.append(membership.user_id)
        self.db.refresh(team)
        logger.info("Team %s: user %s removed members %s", team.id, actor.id, sorted(removed))
        return sorted(removed)

    def change_member_role(self, team: models.Team, actor: models.User, member_id: int, role) -> models.TeamMembership:
        policy.authorize(actor, policy.TEAMS_MANAGE_MEMBERS, team)
        role = MembershipRole(role)
        membership = team.membership_for(member_id)
        if membership is None:
            raise NotAMember()
        if member_id == team.owner_id:
            raise CannotChangeOwnerRole()
        if role is MembershipRole.OWNER:
            raise ValidationError("Ownership can only change through an ownership transfer")

        with atomic(self.db):
            membership.role = role
        self.db.refresh(membership)
        logger.info("Team %s: member %s is now %s", team.id, member_id, role.value)
        return membership

    def transfer_ownership(self, team: models.Team, actor: models.User, new_owner_id: int) -> models.Team:
        policy.authorize(actor, policy.TEAMS_TRANSFER_OWNERSHIP, team)
        new_owner_membership = team.membership_for(new_owner_id)
        if new_owner_membership is None:
            raise NewOwnerMustBeMember()
        if new_owner_id == team.owner_id:
            return team

        previous_owner_id = team.owner_id
        with self._guarded():
            team.owner_id = new_owner_id
            for membership in team.memberships:
                if membership is new_owner_membership:
                    membership.role = MembershipRole.OWNER
                elif membership.role == MembershipRole.OWNER:
                    membership.role = MembershipRole.MEMBER
        self.db.refresh(team)
        logger.info("Team %s ownership moved from %s to %s by user %s", team.id, previous_owner_id, new_owner_id, actor.id)
        return team

    def delete_team(self, team: models.Team, actor: models.User) -> None:
        policy.authorize(actor, policy.TEAMS_DELETE, team)
        active = self.db.query(models.Task).filter(
            models.Task.team_id == team.id,
            models.Task.status != TaskStatus.COMPLETED,
        ).count()
        if active:
            raise TeamHasActiveTasks(f"The team still has {active} task(s) that are not completed")

        team_id = team.id
        with self._guarded():
            team.memberships.clear()
            self.db.flush()
            self.db.delete(team)
        logger.info("Team %s deleted by user %s", team_id, actor.id)

    # HELPERS

    def _check_unique_name(self, name: str):
        if self.db.query(models.Team.id).filter(models.Team.name == name).first():
            raise ValidationError(f"A team named '{name}' already exists")

    def _guarded(self):
        return guarded_atomic(self.db)


@contextmanager
def guarded_atomic(db: Session):
    """atomic() that reports a concurrent write to the team row as Conflict."""
    try:
        with atomic(db):
            yield db
    except StaleDataError as stale:
        raise Conflict() from stale
