import enum


# Task status
class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def color(self) -> str:
        return _STATUS_COLORS[self]

    def is_completed(self) -> bool:
        return self is TaskStatus.COMPLETED

    def is_cancelled(self) -> bool:
        return self is TaskStatus.CANCELLED

    def allowed_transitions(self) -> frozenset:
        return STATUS_TRANSITIONS[self]

    def can_transition_to(self, target: "TaskStatus") -> bool:
        return TaskStatus(target) in STATUS_TRANSITIONS[self]


_STATUS_LABELS = {
    TaskStatus.PENDING: "Pending",
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.CANCELLED: "Cancelled",
}

_STATUS_COLORS = {
    TaskStatus.PENDING: "bg-yellow-500",
    TaskStatus.IN_PROGRESS: "bg-blue-500",
    TaskStatus.COMPLETED: "bg-green-500",
    TaskStatus.CANCELLED: "bg-red-500",
}

# source state -> legal target states
STATUS_TRANSITIONS = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.CANCELLED: frozenset({TaskStatus.PENDING}),
}


# Task priority
class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def label(self) -> str:
        return _PRIORITY_META[self][0]

    @property
    def color(self) -> str:
        return _PRIORITY_META[self][1]

    @property
    def weight(self) -> int:
        return _PRIORITY_META[self][2]

    def is_urgent(self) -> bool:
        return self is TaskPriority.URGENT

    def is_high(self) -> bool:
        return self in (TaskPriority.HIGH, TaskPriority.URGENT)


# priority -> (label, color, weight)
_PRIORITY_META = {
    TaskPriority.LOW: ("Low", "green", 1),
    TaskPriority.MEDIUM: ("Medium", "blue", 2),
    TaskPriority.HIGH: ("High", "orange", 3),
    TaskPriority.URGENT: ("Urgent", "red", 4),
}


# Role of a user inside one team (distinct from global roles)
class MembershipRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    LEAD = "lead"
    MEMBER = "member"


# Membership roles that may manage the team alongside the owner reference
TEAM_MANAGER_ROLES = frozenset({MembershipRole.OWNER, MembershipRole.ADMIN})

# Global role slugs with special meaning in the access policy
ADMIN_ROLE_SLUGS = frozenset({"admin", "super_admin"})
TASK_EDITOR_ROLE_SLUGS = frozenset({"admin", "super_admin", "manager"})


def enum_values(enum_cls):
    """values_callable for SQLAlchemy Enum columns: persist values, not names."""
    return [member.value for member in enum_cls]
