from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import auth, crud, models, schemas
from ..database import get_db
from ..team_service import TeamService

router = APIRouter()


def get_team_service(db: Session = Depends(get_db)) -> TeamService:
    return TeamService(db)


def get_team_or_404(team_id: int, db: Session = Depends(get_db)) -> models.Team:
    return crud.get_or_404(db, models.Team, team_id, "Team")


@router.get("", response_model=schemas.PageOut[schemas.TeamOut])
def list_teams(
    filters: schemas.TeamFilters = Depends(),
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    return schemas.page_payload(service.get_teams(current_user, filters))


@router.get("/stats", response_model=schemas.TeamStats)
def team_stats(
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    return service.get_team_stats(current_user)


@router.post("", response_model=schemas.TeamOut, status_code=status.HTTP_201_CREATED)
def create_team(
    team: schemas.TeamCreate,
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    return service.create_team(current_user, team)


@router.get("/{team_id}", response_model=schemas.TeamOut)
def get_team_details(
    team_id: int,
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    return service.get_team(current_user, team_id)


@router.patch("/{team_id}", response_model=schemas.TeamOut)
def update_team(
    team_update: schemas.TeamUpdate,
    team: models.Team = Depends(get_team_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    return service.update_team(team, current_user, team_update)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team(
    team: models.Team = Depends(get_team_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    service.delete_team(team, current_user)
    return None


@router.post("/{team_id}/members", response_model=schemas.TeamOut)
def add_members(
    payload: schemas.MemberIds,
    team: models.Team = Depends(get_team_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    service.add_members(team, current_user, payload.user_ids)
    return team


@router.delete("/{team_id}/members", response_model=schemas.TeamOut)
def remove_members(
    payload: schemas.MemberIds,
    team: models.Team = Depends(get_team_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    service.remove_members(team, current_user, payload.user_ids)
    return team


@router.patch("/{team_id}/members/{member_id}/role", response_model=schemas.TeamOut)
def change_member_role(
    member_id: int,
    payload: schemas.MemberRoleUpdate,
    team: models.Team = Depends(get_team_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    service.change_member_role(team, current_user, member_id, payload.role)
    return team


@router.post("/{team_id}/transfer-ownership", response_model=schemas.TeamOut)
def transfer_ownership(
    payload: schemas.OwnershipTransfer,
    team: models.Team = Depends(get_team_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TeamService = Depends(get_team_service),
):
    return service.transfer_ownership(team, current_user, payload.new_owner_id)
