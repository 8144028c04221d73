"""Lookups plus the plain CRUD paths for users, roles and categories."""
import logging
from typing import Iterable, List

from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from . import models, policy, schemas
from .database import atomic
from .exceptions import (
    CannotDeleteSelf,
    CategoryInUse,
    NotFound,
    PermissionDenied,
    RoleInUse,
    SomeUsersNotFound,
    UserHasTasks,
    UserOwnsTeams,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Columns a PATCH body may leave out but not null out
USER_REQUIRED_FIELDS = ("name", "email", "is_active")
ROLE_REQUIRED_FIELDS = ("name", "slug")
CATEGORY_REQUIRED_FIELDS = ("name", "color", "is_active")


def get_or_404(db: Session, model, entity_id: int, label: str = None):
    instance = db.get(model, entity_id)
    if instance is None:
        raise NotFound(f"{label or model.__name__} {entity_id} not found")
    return instance


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def get_user_by_id(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_users_by_ids(db: Session, user_ids: Iterable[int]) -> List[models.User]:
    """All users for ``user_ids``, or SomeUsersNotFound naming the ids that do not resolve."""
    wanted = set(user_ids)
    if not wanted:
        return []
    users = db.query(models.User).filter(models.User.id.in_(wanted)).all()
    missing = wanted - {u.id for u in users}
    if missing:
        raise SomeUsersNotFound(missing)
    return sorted(users, key=lambda u: u.id)


def get_role_by_slug(db: Session, slug: str):
    return db.query(models.Role).filter(models.Role.slug == slug).first()


def reject_nulls(data: dict, fields: Iterable[str]) -> None:
    """A partial update may omit a required column but never set it to null."""
    for name in fields:
        if name in data and data[name] is None:
            raise ValidationError(f"{name} cannot be null")


def _roles_by_ids(db: Session, role_ids: Iterable[int]) -> List[models.Role]:
    wanted = set(role_ids)
    roles = db.query(models.Role).filter(models.Role.id.in_(wanted)).all() if wanted else []
    if len(roles) != len(wanted):
        raise ValidationError("Some roles do not exist")
    return roles


def _permissions_by_ids(db: Session, permission_ids: Iterable[int]) -> List[models.Permission]:
    wanted = set(permission_ids)
    perms = db.query(models.Permission).filter(models.Permission.id.in_(wanted)).all() if wanted else []
    if len(perms) != len(wanted):
        raise ValidationError("Some permissions do not exist")
    return perms


# USERS

def list_users(db: Session, actor: models.User):
    policy.authorize(actor, policy.USERS_READ)
    return db.query(models.User).order_by(models.User.name).all()


def create_user(db: Session, actor: models.User, user: schemas.UserCreate):
    policy.authorize(actor, policy.USERS_MANAGE)
    if get_user_by_email(db, user.email):
        raise ValidationError("Email already registered")
    with atomic(db):
        db_user = models.User(
            name=user.name,
            email=user.email,
            username=user.username,
            hashed_password=bcrypt.hash(user.password),
            position=user.position,
            department=user.department,
            phone=user.phone,
            bio=user.bio,
        )
        db_user.roles = _roles_by_ids(db, user.role_ids)
        db.add(db_user)
    db.refresh(db_user)
    logger.info("User %s created by %s", db_user.id, actor.id)
    return db_user


def assign_roles(db: Session, actor: models.User, user: models.User, role_ids: List[int]):
    policy.authorize(actor, policy.USERS_MANAGE)
    with atomic(db):
        user.roles = _roles_by_ids(db, role_ids)
    db.refresh(user)
    logger.info("Roles of user %s set to %s by %s", user.id, sorted(user.role_slugs), actor.id)
    return user


def get_user(db: Session, actor: models.User, user_id: int):
    user = get_or_404(db, models.User, user_id, "User")
    policy.authorize(actor, policy.USERS_READ, user)
    return user


def _check_unique_identity(db: Session, user: models.User, data: dict):
    email = data.get("email")
    if email and email != user.email and get_user_by_email(db, email):
        raise ValidationError("Email already registered")
    username = data.get("username")
    if username and username != user.username:
        taken = db.query(models.User.id).filter(models.User.username == username).first()
        if taken:
            raise ValidationError(f"Username '{username}' is already taken")


def update_user(db: Session, actor: models.User, user: models.User, user_update: schemas.UserUpdate):
    """Admins edit anyone, other holders of users.manage only themselves. Roles are admin-only."""
    policy.authorize(actor, policy.USERS_MANAGE, user)
    data = user_update.model_dump(exclude_unset=True)
    reject_nulls(data, USER_REQUIRED_FIELDS)
    role_ids = data.pop("role_ids", None)
    password = data.pop("password", None)
    if role_ids is not None and not actor.is_admin:
        raise PermissionDenied("Only administrators can change roles")
    _check_unique_identity(db, user, data)

    with atomic(db):
        for field, value in data.items():
            setattr(user, field, value)
        if password:
            user.hashed_password = bcrypt.hash(password)
        if role_ids is not None:
            user.roles = _roles_by_ids(db, role_ids)
    db.refresh(user)
    logger.info("User %s updated by %s (fields=%s)", user.id, actor.id, sorted(data))
    return user


def update_profile(db: Session, user: models.User, profile_update: schemas.ProfileUpdate):
    data = profile_update.model_dump(exclude_unset=True)
    reject_nulls(data, USER_REQUIRED_FIELDS)
    _check_unique_identity(db, user, data)
    with atomic(db):
        for field, value in data.items():
            setattr(user, field, value)
    db.refresh(user)
    return user


def delete_user(db: Session, actor: models.User, user: models.User):
    policy.authorize(actor, policy.USERS_MANAGE, user)
    if not actor.is_admin:
        raise PermissionDenied("Only administrators can delete users")
    if user.id == actor.id:
        raise CannotDeleteSelf()

    created = db.query(models.Task).filter(models.Task.created_by == user.id).count()
    assigned = db.query(models.Task).filter(models.Task.assigned_to == user.id).count()
    if created or assigned:
        raise UserHasTasks(f"The user created {created} and is assigned {assigned} task(s)")
    if db.query(models.Team.id).filter(models.Team.owner_id == user.id).first():
        raise UserOwnsTeams()

    user_id = user.id
    with atomic(db):
        db.delete(user)
    logger.info("User %s deleted by %s", user_id, actor.id)


# ROLES

def list_roles(db: Session, actor: models.User):
    policy.authorize(actor, policy.ROLES_READ)
    return db.query(models.Role).order_by(models.Role.name).all()


def list_permissions_by_module(db: Session, actor: models.User):
    policy.authorize(actor, policy.ROLES_MANAGE)
    grouped = {}
    for perm in db.query(models.Permission).order_by(models.Permission.module, models.Permission.name):
        grouped.setdefault(perm.module or "general", []).append(perm)
    return grouped


def create_role(db: Session, actor: models.User, role: schemas.RoleCreate):
    policy.authorize(actor, policy.ROLES_MANAGE)
    if get_role_by_slug(db, role.slug):
        raise ValidationError(f"Role slug '{role.slug}' already exists")
    with atomic(db):
        db_role = models.Role(name=role.name, slug=role.slug, description=role.description, is_system=False)
        db_role.permissions = _permissions_by_ids(db, role.permission_ids)
        db.add(db_role)
    db.refresh(db_role)
    return db_role


def update_role(db: Session, actor: models.User, role: models.Role, role_update: schemas.RoleUpdate):
    policy.authorize(actor, policy.ROLES_MANAGE, role)
    data = role_update.model_dump(exclude_unset=True)
    reject_nulls(data, ROLE_REQUIRED_FIELDS)
    permission_ids = data.pop("permission_ids", None)
    if "slug" in data and data["slug"] != role.slug and get_role_by_slug(db, data["slug"]):
        raise ValidationError(f"Role slug '{data['slug']}' already exists")
    with atomic(db):
        for field, value in data.items():
            setattr(role, field, value)
        if permission_ids is not None:
            role.permissions = _permissions_by_ids(db, permission_ids)
    db.refresh(role)
    return role


def delete_role(db: Session, actor: models.User, role: models.Role):
    policy.authorize(actor, policy.ROLES_MANAGE, role)
    if role.users:
        raise RoleInUse(f"The role is still assigned to {len(role.users)} user(s)")
    with atomic(db):
        db.delete(role)


# CATEGORIES

def create_category(db: Session, actor: models.User, category: schemas.CategoryCreate):
    policy.authorize(actor, policy.CATEGORIES_MANAGE)
    with atomic(db):
        db_category = models.Category(
            name=category.name,
            description=category.description,
            color=category.color or "#6b7280",
            icon=category.icon,
            created_by=actor.id,
        )
        db.add(db_category)
    db.refresh(db_category)
    return db_category


def get_category(db: Session, actor: models.User, category_id: int):
    category = get_or_404(db, models.Category, category_id, "Category")
    policy.authorize(actor, policy.CATEGORIES_READ, category)
    return category


def update_category(db: Session, actor: models.User, category: models.Category, category_update: schemas.CategoryUpdate):
    policy.authorize(actor, policy.CATEGORIES_MANAGE, category)
    data = category_update.model_dump(exclude_unset=True)
    reject_nulls(data, CATEGORY_REQUIRED_FIELDS)
    with atomic(db):
        for field, value in data.items():
            setattr(category, field, value)
    db.refresh(category)
    return category


def delete_category(db: Session, actor: models.User, category: models.Category):
    policy.authorize(actor, policy.CATEGORIES_MANAGE, category)
    task_count = db.query(models.Task).filter(models.Task.category_id == category.id).count()
    if task_count:
        raise CategoryInUse(f"The category is used by {task_count} task(s)")
    with atomic(db):
        db.delete(category)
