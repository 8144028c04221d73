from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import (
    ADMIN_ROLE_SLUGS,
    TEAM_MANAGER_ROLES,
    MembershipRole,
    TaskPriority,
    TaskStatus,
    enum_values,
)
from .timeutils import today, utcnow

user_role = Table(
    "user_role",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)

role_permission = Table(
    "role_permission",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text)
    module = Column(String(50), index=True)
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    roles = relationship("Role", secondary=role_permission, back_populates="permissions")

    def __repr__(self):
        return f"<Permission(slug='{self.slug}')>"


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text)
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    permissions = relationship("Permission", secondary=role_permission, back_populates="roles")
    users = relationship("User", secondary=user_role, back_populates="roles")

    def has_permission(self, slug: str) -> bool:
        return any(p.slug == slug for p in self.permissions)

    def __repr__(self):
        return f"<Role(slug='{self.slug}')>"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    username = Column(String(100), unique=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255))
    position = Column(String(100))
    department = Column(String(100))
    phone = Column(String(30))
    bio = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    roles = relationship("Role", secondary=user_role, back_populates="users")
    memberships = relationship("TeamMembership", back_populates="user", cascade="all, delete-orphan")
    owned_teams = relationship("Team", back_populates="owner")
    created_tasks = relationship(
        "Task", foreign_keys="Task.created_by", back_populates="creator", cascade="all, delete-orphan"
    )
    assigned_tasks = relationship("Task", foreign_keys="Task.assigned_to", back_populates="assignee")
    categories = relationship("Category", back_populates="creator", cascade="all, delete-orphan")

    @property
    def role_slugs(self) -> set:
        return {role.slug for role in self.roles}

    @property
    def permission_slugs(self) -> set:
        """Union of the permissions of every assigned role"""
        return {perm.slug for role in self.roles for perm in role.permissions}

    def has_role(self, slug: str) -> bool:
        return slug in self.role_slugs

    def has_any_role(self, slugs) -> bool:
        return bool(self.role_slugs & set(slugs))

    def has_permission(self, slug: str) -> bool:
        return slug in self.permission_slugs

    @property
    def is_admin(self) -> bool:
        return self.has_any_role(ADMIN_ROLE_SLUGS)

    @property
    def team_ids(self) -> set:
        return {m.team_id for m in self.memberships}

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text)
    color = Column(String(7), nullable=False, default="#3b82f6")
    is_active = Column(Boolean, nullable=False, default=True)
    # nullable only so that deleting the owner's account leaves the team behind
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="owned_teams")
    memberships = relationship(
        "TeamMembership", back_populates="team", cascade="all, delete-orphan", order_by="TeamMembership.id"
    )
    tasks = relationship("Task", back_populates="team")

    __mapper_args__ = {"version_id_col": version}

    @property
    def members(self):
        return [m.user for m in self.memberships]

    def membership_for(self, user_id: int):
        for membership in self.memberships:
            if membership.user_id == user_id:
                return membership
        return None

    def has_member(self, user_id: int) -> bool:
        return self.membership_for(user_id) is not None

    def members_by_role(self, role: MembershipRole):
        return [m.user for m in self.memberships if m.role == role]

    def is_owner(self, user) -> bool:
        return self.owner_id is not None and self.owner_id == user.id

    def is_admin(self, user) -> bool:
        membership = self.membership_for(user.id)
        return membership is not None and membership.role in TEAM_MANAGER_ROLES

    def can_be_managed_by(self, user) -> bool:
        return self.is_owner(user) or self.is_admin(user)

    def add_member(self, user, role: MembershipRole = MembershipRole.MEMBER):
        membership = TeamMembership(user=user, role=role, joined_at=utcnow())
        self.memberships.append(membership)
        return membership

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}')>"


class TeamMembership(Base):
    __tablename__ = "user_team"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        SQLEnum(MembershipRole, values_callable=enum_values, name="membership_role"),
        nullable=False,
        default=MembershipRole.MEMBER,
        index=True,
    )
    joined_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="memberships")
    team = relationship("Team", back_populates="memberships")

    __table_args__ = (UniqueConstraint("user_id", "team_id", name="uq_user_team"),)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), index=True, nullable=False)
    description = Column(Text)
    color = Column(String(7), nullable=False, default="#6b7280")
    icon = Column(String(50))
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    creator = relationship("User", back_populates="categories")
    tasks = relationship("Task", back_populates="category")

    @property
    def completion_percentage(self) -> float:
        total = len(self.tasks)
        if total == 0:
            return 0.0
        completed = sum(1 for t in self.tasks if t.status == TaskStatus.COMPLETED)
        return round(completed / total * 100, 2)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(
        SQLEnum(TaskStatus, values_callable=enum_values, name="task_status"),
        nullable=False,
        default=TaskStatus.PENDING,
        index=True,
    )
    priority = Column(
        SQLEnum(TaskPriority, values_callable=enum_values, name="task_priority"),
        nullable=False,
        default=TaskPriority.MEDIUM,
        index=True,
    )
    due_date = Column(Date, index=True)
    completed_at = Column(DateTime)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), index=True)

    estimated_hours = Column(Integer)
    actual_hours = Column(Integer)
    tags = Column(JSON, default=list)
    attachments = Column(JSON, default=list)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    creator = relationship("User", foreign_keys=[created_by], back_populates="created_tasks")
    assignee = relationship("User", foreign_keys=[assigned_to], back_populates="assigned_tasks")
    category = relationship("Category", back_populates="tasks")
    team = relationship("Team", back_populates="tasks")

    def apply_status(self, status: TaskStatus) -> None:
        """Set the status and keep completed_at in step with it."""
        status = TaskStatus(status)
        if status is TaskStatus.COMPLETED:
            if self.status != TaskStatus.COMPLETED or self.completed_at is None:
                self.completed_at = utcnow()
        else:
            self.completed_at = None
        self.status = status

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def is_cancelled(self) -> bool:
        return self.status == TaskStatus.CANCELLED

    @property
    def is_overdue(self) -> bool:
        return self.due_date is not None and self.due_date < today() and not self.is_completed

    @property
    def is_due_soon(self) -> bool:
        if self.due_date is None or self.is_completed:
            return False
        days_left = (self.due_date - today()).days
        return 0 < days_left <= 3

    @property
    def progress_percentage(self) -> int:
        if self.estimated_hours and self.actual_hours:
            return min(100, round(self.actual_hours / self.estimated_hours * 100))
        return 100 if self.is_completed else 0

    def __repr__(self):
        return f"<Task(id={self.id}, title='{self.title}', status='{self.status}')>"
