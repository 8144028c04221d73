# tests/conftest.py

from __future__ import annotations

import itertools
from typing import Callable

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from taskhub import config, models, schemas
from taskhub.database import Base, get_db
from taskhub.main import app
from taskhub.seed import seed_roles_and_permissions
from taskhub.task_service import TaskService
from taskhub.team_service import TeamService

from .fakes import FakeNotifications


@pytest.fixture()
def engine():
    """Fresh in-memory SQLite database per test; StaticPool keeps a single connection alive."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine) -> Session:
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    seed_roles_and_permissions(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    counter = itertools.count(1)

    def _make(role: str | None = "user", *, name: str | None = None, is_active: bool = True) -> models.User:
        n = next(counter)
        user = models.User(
            name=name or f"User {n}",
            email=f"user{n}@taskhub.io",
            is_active=is_active,
        )
        if role is not None:
            user.roles = [db.query(models.Role).filter(models.Role.slug == role).one()]
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def admin(make_user) -> models.User:
    return make_user("admin", name="Ada Admin")


@pytest.fixture()
def manager(make_user) -> models.User:
    return make_user("manager", name="Mona Manager")


@pytest.fixture()
def alice(make_user) -> models.User:
    return make_user("user", name="Alice")


@pytest.fixture()
def bob(make_user) -> models.User:
    return make_user("user", name="Bob")


@pytest.fixture()
def viewer(make_user) -> models.User:
    return make_user("viewer", name="Vic Viewer")


@pytest.fixture()
def notifications() -> FakeNotifications:
    return FakeNotifications()


@pytest.fixture()
def tasks(db: Session, notifications: FakeNotifications) -> TaskService:
    return TaskService(db, notifications=notifications)


@pytest.fixture()
def teams(db: Session, notifications: FakeNotifications) -> TeamService:
    return TeamService(db, notifications=notifications)


@pytest.fixture()
def team(teams: TeamService, manager: models.User, alice: models.User) -> models.Team:
    """A team owned by the manager with Alice as a plain member."""
    return teams.create_team(manager, schemas.TeamCreate(name="Platform", member_ids=[alice.id]))


# HTTP


def token_for(user: models.User) -> str:
    return jwt.encode({"sub": user.email}, config.SECRET_KEY, algorithm=config.ALGORITHM)


def auth_headers(user: models.User) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture()
def client(db: Session):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
