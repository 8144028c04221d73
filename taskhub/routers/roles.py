from typing import Dict, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import auth, crud, models, policy, schemas
from ..database import get_db

router = APIRouter()


def get_role_or_404(role_id: int, db: Session = Depends(get_db)) -> models.Role:
    return crud.get_or_404(db, models.Role, role_id, "Role")


@router.get("", response_model=List[schemas.RoleOut])
def list_roles(current_user: models.User = Depends(auth.get_current_user), db: Session = Depends(get_db)):
    return crud.list_roles(db, current_user)


@router.get("/permissions/list", response_model=Dict[str, List[schemas.PermissionOut]])
def list_permissions(current_user: models.User = Depends(auth.get_current_user), db: Session = Depends(get_db)):
    return crud.list_permissions_by_module(db, current_user)


@router.post("", response_model=schemas.RoleOut, status_code=status.HTTP_201_CREATED)
def create_role(
    role: schemas.RoleCreate,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return crud.create_role(db, current_user, role)


@router.get("/{role_id}", response_model=schemas.RoleOut)
def get_role_details(
    role: models.Role = Depends(get_role_or_404),
    current_user: models.User = Depends(auth.get_current_user),
):
    policy.authorize(current_user, policy.ROLES_READ, role)
    return role


@router.patch("/{role_id}", response_model=schemas.RoleOut)
def update_role(
    role_update: schemas.RoleUpdate,
    role: models.Role = Depends(get_role_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return crud.update_role(db, current_user, role, role_update)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role: models.Role = Depends(get_role_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    crud.delete_role(db, current_user, role)
    return None
