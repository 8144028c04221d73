from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import auth, crud, models, schemas
from ..database import get_db
from ..task_service import TaskService

router = APIRouter()


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(db)


def get_task_or_404(task_id: int, db: Session = Depends(get_db)) -> models.Task:
    return crud.get_or_404(db, models.Task, task_id, "Task")


@router.get("", response_model=schemas.PageOut[schemas.TaskOut])
def list_tasks(
    filters: schemas.TaskFilters = Depends(),
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return schemas.page_payload(service.get_tasks(current_user, filters))


@router.get("/stats", response_model=schemas.TaskStats)
def task_stats(
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.get_task_stats(current_user)


@router.post("", response_model=schemas.TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    task: schemas.TaskCreate,
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.create_task(current_user, task)


@router.get("/{task_id}", response_model=schemas.TaskOut)
def get_task_details(
    task_id: int,
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.get_task(current_user, task_id)


@router.patch("/{task_id}", response_model=schemas.TaskOut)
@router.put("/{task_id}", response_model=schemas.TaskOut)
def update_task(
    task_update: schemas.TaskUpdate,
    task: models.Task = Depends(get_task_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.update_task(task, current_user, task_update)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task: models.Task = Depends(get_task_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    service.delete_task(task, current_user)
    return None


@router.patch("/{task_id}/complete", response_model=schemas.TaskOut)
def mark_completed(
    task: models.Task = Depends(get_task_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.mark_completed(task, current_user)


@router.patch("/{task_id}/in-progress", response_model=schemas.TaskOut)
def mark_in_progress(
    task: models.Task = Depends(get_task_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.mark_in_progress(task, current_user)


@router.patch("/{task_id}/cancel", response_model=schemas.TaskOut)
def mark_cancelled(
    task: models.Task = Depends(get_task_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.mark_cancelled(task, current_user)


@router.patch("/{task_id}/reopen", response_model=schemas.TaskOut)
def reopen(
    task: models.Task = Depends(get_task_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return service.reopen(task, current_user)
