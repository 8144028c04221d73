from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import auth, crud, filters, models, policy, schemas
from ..database import get_db

router = APIRouter()


def get_category_or_404(category_id: int, db: Session = Depends(get_db)) -> models.Category:
    return crud.get_or_404(db, models.Category, category_id, "Category")


@router.get("", response_model=schemas.PageOut[schemas.CategoryOut])
def list_categories(
    category_filters: schemas.CategoryFilters = Depends(),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    policy.authorize(current_user, policy.CATEGORIES_READ)
    query = filters.category_query(db, current_user, category_filters)
    return schemas.page_payload(filters.paginate(query, category_filters.page, category_filters.per_page))


@router.post("", response_model=schemas.CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    category: schemas.CategoryCreate,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return crud.create_category(db, current_user, category)


@router.get("/{category_id}", response_model=schemas.CategoryOut)
def get_category_details(
    category_id: int,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return crud.get_category(db, current_user, category_id)


@router.patch("/{category_id}", response_model=schemas.CategoryOut)
def update_category(
    category_update: schemas.CategoryUpdate,
    category: models.Category = Depends(get_category_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    return crud.update_category(db, current_user, category, category_update)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category: models.Category = Depends(get_category_or_404),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    crud.delete_category(db, current_user, category)
    return None
