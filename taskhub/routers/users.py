from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import auth, crud, models, schemas
from ..database import get_db

router = APIRouter()


def _detail(user: models.User) -> schemas.UserDetail:
    detail = schemas.UserDetail.model_validate(user, from_attributes=True)
    detail.permissions = sorted(user.permission_slugs)
    return detail


def get_user_or_404(user_id: int, db: Session = Depends(get_db)) -> models.User:
    return crud.get_or_404(db, models.User, user_id, "User")


@router.get("", response_model=List[schemas.UserOut])
def list_users(current_user: models.User = Depends(auth.get_current_user), db: Session = Depends(get_db)):
    return crud.list_users(db, current_user)


@router.get("/profile", response_model=schemas.UserDetail)
def profile(current_user: models.User = Depends(auth.get_current_user)):
    return _detail(current_user)


@router.put("/profile", response_model=schemas.UserDetail)
def update_profile(
    profile_update: schemas.ProfileUpdate,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return _detail(crud.update_profile(db, current_user, profile_update))


@router.post("", response_model=schemas.UserDetail, status_code=status.HTTP_201_CREATED)
def create_user(
    user: schemas.UserCreate,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return _detail(crud.create_user(db, current_user, user))


@router.get("/{user_id}", response_model=schemas.UserDetail)
def get_user(
    user_id: int,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return _detail(crud.get_user(db, current_user, user_id))


@router.patch("/{user_id}", response_model=schemas.UserDetail)
def update_user(
    user_update: schemas.UserUpdate,
    user: models.User = Depends(get_user_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return _detail(crud.update_user(db, current_user, user, user_update))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user: models.User = Depends(get_user_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    crud.delete_user(db, current_user, user)
    return None


@router.put("/{user_id}/roles", response_model=schemas.UserDetail)
def assign_roles(
    payload: schemas.RoleAssignment,
    user: models.User = Depends(get_user_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return _detail(crud.assign_roles(db, current_user, user, payload.role_ids))
