"""System permissions and roles, plus a small admin CLI.

    python -m taskhub.seed                       # create/refresh system roles
    python -m taskhub.seed assign-role EMAIL --role manager
"""
import argparse
import logging
import sys

from sqlalchemy.orm import Session

from . import config, models, policy
from .database import Base, SessionLocal, atomic, engine
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)

# (slug, name, module)
SYSTEM_PERMISSIONS = [
    (policy.TASKS_CREATE, "Create tasks", "tasks"),
    (policy.TASKS_READ, "View tasks", "tasks"),
    (policy.TASKS_UPDATE, "Edit tasks", "tasks"),
    (policy.TASKS_DELETE, "Delete tasks", "tasks"),
    (policy.TASKS_ASSIGN, "Assign tasks to other users", "tasks"),
    (policy.USERS_MANAGE, "Manage users", "users"),
    (policy.USERS_READ, "View users", "users"),
    (policy.ROLES_MANAGE, "Manage roles", "roles"),
    (policy.ROLES_READ, "View roles", "roles"),
    (policy.TEAMS_READ, "View teams", "teams"),
    (policy.TEAMS_CREATE, "Create teams", "teams"),
    (policy.TEAMS_UPDATE, "Edit teams", "teams"),
    (policy.TEAMS_DELETE, "Delete teams", "teams"),
    (policy.TEAMS_MANAGE_MEMBERS, "Manage team members", "teams"),
    (policy.TEAMS_TRANSFER_OWNERSHIP, "Transfer team ownership", "teams"),
    (policy.CATEGORIES_MANAGE, "Manage categories", "categories"),
    (policy.CATEGORIES_READ, "View categories", "categories"),
    (policy.DASHBOARD_READ, "View dashboard", "dashboard"),
    (policy.REPORTS_READ, "View reports", "reports"),
]

ALL = object()

# slug -> (name, description, permission slugs)
SYSTEM_ROLES = {
    "super_admin": ("Super Administrator", "Full access to the system", ALL),
    "admin": (
        "Administrator",
        "Manages users, teams and tasks",
        [slug for slug, _, _ in SYSTEM_PERMISSIONS if slug != policy.ROLES_MANAGE],
    ),
    "manager": (
        "Manager",
        "Manages the tasks of their teams",
        [
            policy.TASKS_CREATE, policy.TASKS_READ, policy.TASKS_UPDATE, policy.TASKS_DELETE, policy.TASKS_ASSIGN,
            policy.TEAMS_READ, policy.TEAMS_CREATE, policy.TEAMS_UPDATE, policy.TEAMS_DELETE,
            policy.TEAMS_MANAGE_MEMBERS, policy.TEAMS_TRANSFER_OWNERSHIP,
            policy.CATEGORIES_READ, policy.CATEGORIES_MANAGE, policy.DASHBOARD_READ,
        ],
    ),
    "user": (
        "User",
        "Manages their own tasks",
        [
            policy.TASKS_CREATE, policy.TASKS_READ, policy.TASKS_UPDATE, policy.TASKS_DELETE,
            policy.TEAMS_READ, policy.CATEGORIES_READ, policy.DASHBOARD_READ,
        ],
    ),
    "viewer": ("Viewer", "Read-only access to assigned tasks", [policy.TASKS_READ, policy.DASHBOARD_READ]),
}


def seed_roles_and_permissions(db: Session) -> None:
    """Create missing system permissions and roles; safe to run repeatedly."""
    with atomic(db):
        permissions = {p.slug: p for p in db.query(models.Permission).all()}
        for slug, name, module in SYSTEM_PERMISSIONS:
            if slug not in permissions:
                permissions[slug] = models.Permission(slug=slug, name=name, module=module, is_system=True)
                db.add(permissions[slug])

        for slug, (name, description, granted) in SYSTEM_ROLES.items():
            role = db.query(models.Role).filter(models.Role.slug == slug).first()
            if role is None:
                role = models.Role(slug=slug, name=name, description=description, is_system=True)
                db.add(role)
            slugs = list(permissions) if granted is ALL else granted
            role.permissions = [permissions[s] for s in slugs]
    logger.info("Seeded %s permissions and %s roles", len(SYSTEM_PERMISSIONS), len(SYSTEM_ROLES))


def assign_role(db: Session, email: str, role_slug: str) -> models.User:
    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None:
        raise LookupError(f"User with email {email} not found")
    role = db.query(models.Role).filter(models.Role.slug == role_slug).first()
    if role is None:
        raise LookupError(f"Role '{role_slug}' not found")
    with atomic(db):
        user.roles = [role]
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="taskhub-admin")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("seed", help="create system permissions and roles")
    assign = sub.add_parser("assign-role", help="replace a user's roles with one role")
    assign.add_argument("email")
    assign.add_argument("--role", default="user")
    args = parser.parse_args(argv)

    setup_logging(config.LOG_LEVEL)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.command == "assign-role":
            try:
                user = assign_role(db, args.email, args.role)
            except LookupError as exc:
                logger.error("%s", exc)
                return 1
            logger.info("Role '%s' assigned to %s; permissions: %s", args.role, user.email, sorted(user.permission_slugs))
        else:
            seed_roles_and_permissions(db)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
