from datetime import date, datetime
from typing import Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field, field_validator

from .enums import MembershipRole, TaskPriority, TaskStatus
from .timeutils import today

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"

T = TypeVar("T")


# USERS & ROLES

class PermissionOut(BaseModel):
    id: int
    name: str
    slug: str
    module: Optional[str] = None
    description: Optional[str] = None
    class Config:
        from_attributes = True


class RoleBrief(BaseModel):
    id: int
    name: str
    slug: str
    class Config:
        from_attributes = True


class RoleOut(RoleBrief):
    description: Optional[str] = None
    is_system: bool
    permissions: List[PermissionOut] = []


class RoleCreate(BaseModel):
    name: str = Field(max_length=255)
    slug: str = Field(max_length=255, pattern=r"^[a-z0-9_.-]+$")
    description: Optional[str] = None
    permission_ids: List[int] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255, pattern=r"^[a-z0-9_.-]+$")
    description: Optional[str] = None
    permission_ids: Optional[List[int]] = None


class UserCreate(BaseModel):
    name: str = Field(max_length=255)
    email: EmailStr
    password: str = Field(min_length=8)
    username: Optional[str] = Field(default=None, max_length=100)
    position: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    role_ids: List[int] = []


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    username: Optional[str] = None
    position: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    is_active: bool
    class Config:
        from_attributes = True


class UserDetail(UserOut):
    roles: List[RoleBrief] = []
    permissions: List[str] = []


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    username: Optional[str] = Field(default=None, max_length=100)
    position: Optional[str] = Field(default=None, max_length=100)
    department: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    bio: Optional[str] = None


class UserUpdate(ProfileUpdate):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8)
    is_active: Optional[bool] = None
    role_ids: Optional[List[int]] = None


class RoleAssignment(BaseModel):
    role_ids: List[int]


# CATEGORIES

class CategoryCreate(BaseModel):
    name: str = Field(max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, max_length=50)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    color: str
    icon: Optional[str] = None
    created_by: int
    is_active: bool
    class Config:
        from_attributes = True


class CategoryFilters(BaseModel):
    search: Optional[str] = None
    is_active: Optional[bool] = None
    sort_by: Optional[str] = None
    sort_order: Optional[Literal["asc", "desc"]] = None
    page: int = Field(default=1, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1)


# TASKS

class TaskBase(BaseModel):
    title: str = Field(max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None
    assigned_to: Optional[int] = None
    category_id: Optional[int] = None
    team_id: Optional[int] = None
    estimated_hours: Optional[int] = Field(default=None, ge=1)
    tags: List[str] = []


class TaskCreate(TaskBase):
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None

    @field_validator("due_date")
    @classmethod
    def due_date_not_in_past(cls, value):
        if value is not None and value < today():
            raise ValueError("due_date cannot be in the past")
        return value

    @field_validator("tags")
    @classmethod
    def short_tags(cls, value):
        if any(len(tag) > 50 for tag in value):
            raise ValueError("tags must be at most 50 characters")
        return value


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    assigned_to: Optional[int] = None
    category_id: Optional[int] = None
    team_id: Optional[int] = None
    estimated_hours: Optional[int] = Field(default=None, ge=1)
    actual_hours: Optional[int] = Field(default=None, ge=1)
    tags: Optional[List[str]] = None
    attachments: Optional[List[str]] = None


class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    created_by: int
    assigned_to: Optional[int] = None
    category_id: Optional[int] = None
    team_id: Optional[int] = None
    estimated_hours: Optional[int] = None
    actual_hours: Optional[int] = None
    tags: Optional[List[str]] = None
    attachments: Optional[List[str]] = None
    is_overdue: bool
    progress_percentage: int
    created_at: datetime
    updated_at: datetime
    class Config:
        from_attributes = True


class TaskFilters(BaseModel):
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    category_id: Optional[int] = None
    team_id: Optional[int] = None
    assigned_to: Optional[int] = None
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[Literal["asc", "desc"]] = None
    page: int = Field(default=1, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1)


class TaskStats(BaseModel):
    total: int
    pending: int
    in_progress: int
    completed: int
    cancelled: int
    overdue: int
    completion_rate: float


# TEAMS

class TeamCreate(BaseModel):
    name: str = Field(max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    is_active: bool = True
    member_ids: List[int] = []


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    is_active: Optional[bool] = None


class MemberIds(BaseModel):
    user_ids: List[int] = Field(min_length=1)


class MemberRoleUpdate(BaseModel):
    role: MembershipRole


class OwnershipTransfer(BaseModel):
    new_owner_id: int


class MembershipOut(BaseModel):
    user_id: int
    role: MembershipRole
    joined_at: datetime
    user: UserOut
    class Config:
        from_attributes = True


class TeamOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    color: str
    is_active: bool
    owner_id: Optional[int] = None
    memberships: List[MembershipOut] = []
    created_at: datetime
    class Config:
        from_attributes = True


class TeamFilters(BaseModel):
    search: Optional[str] = None
    is_active: Optional[bool] = None
    owner_id: Optional[int] = None
    sort_by: Optional[str] = None
    sort_order: Optional[Literal["asc", "desc"]] = None
    page: int = Field(default=1, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1)


class TeamStats(BaseModel):
    total: int
    active: int
    inactive: int


# DASHBOARD

class TeamSize(BaseModel):
    id: int
    name: str
    member_count: int


class TeamSizes(BaseModel):
    total_teams: int
    teams: List[TeamSize]


class DashboardOverview(BaseModel):
    task_stats: TaskStats
    recent_tasks: List[TaskOut]
    upcoming_deadlines: List[TaskOut]
    team_stats: TeamSizes


class MonthCount(BaseModel):
    year: int
    month: int
    count: int


class TasksSummary(BaseModel):
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    by_month: List[MonthCount]


class TeamPerformance(BaseModel):
    id: int
    name: str
    total_tasks: int
    completed_tasks: int
    overdue_tasks: int
    completion_rate: float
    member_count: int


# PAGINATION

class Pagination(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int


class PageOut(BaseModel, Generic[T]):
    data: List[T]
    pagination: Pagination


def page_payload(page) -> dict:
    """Response body for PageOut; items stay ORM objects until FastAPI serializes them."""
    return {
        "data": page.items,
        "pagination": {
            "current_page": page.current_page,
            "last_page": page.last_page,
            "per_page": page.per_page,
            "total": page.total,
        },
    }
