from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import auth, models, schemas
from ..dashboard import DashboardService
from ..database import get_db

router = APIRouter()


def get_dashboard_service(db: Session = Depends(get_db)) -> DashboardService:
    return DashboardService(db)


@router.get("", response_model=schemas.DashboardOverview)
def overview(
    current_user: models.User = Depends(auth.get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return service.overview(current_user)


@router.get("/tasks-summary", response_model=schemas.TasksSummary)
def tasks_summary(
    current_user: models.User = Depends(auth.get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return service.tasks_summary(current_user)


@router.get("/team-performance", response_model=List[schemas.TeamPerformance])
def team_performance(
    current_user: models.User = Depends(auth.get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return service.team_performance(current_user)
