"""Typed errors raised by the policy and service layers.

The FastAPI app maps every ``TaskHubError`` to ``status_code`` and a JSON body
``{"message": ..., "code": ...}``.
"""


class TaskHubError(Exception):
    status_code = 400
    code = "error"
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDenied(TaskHubError):
    status_code = 403
    code = "permission_denied"
    default_message = "You do not have permission to perform this action"


class TeamAccessDenied(TaskHubError):
    status_code = 403
    code = "team_access_denied"
    default_message = "You do not have access to this team"


class NotFound(TaskHubError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class AlreadyInState(TaskHubError):
    status_code = 409
    code = "already_in_state"
    default_message = "Task is already in the requested state"


class InvalidTransition(TaskHubError):
    status_code = 409
    code = "invalid_transition"
    default_message = "Task status transition is not allowed"


class SomeUsersNotFound(TaskHubError):
    status_code = 422
    code = "some_users_not_found"
    default_message = "Some users do not exist"

    def __init__(self, missing_ids=(), message: str = None):
        self.missing_ids = sorted(missing_ids)
        super().__init__(message or f"Some users do not exist: {self.missing_ids}")


class CannotRemoveOwner(TaskHubError):
    code = "cannot_remove_owner"
    default_message = "The team owner cannot be removed from the team"


class CannotChangeOwnerRole(TaskHubError):
    code = "cannot_change_owner_role"
    default_message = "The team owner's role cannot be changed"


class NewOwnerMustBeMember(TaskHubError):
    code = "new_owner_must_be_member"
    default_message = "The new owner must be a member of the team"


class NotAMember(TaskHubError):
    code = "not_a_member"
    default_message = "The user is not a member of this team"


class TeamHasActiveTasks(TaskHubError):
    status_code = 409
    code = "team_has_active_tasks"
    default_message = "A team with active tasks cannot be deleted"


class CategoryInUse(TaskHubError):
    status_code = 409
    code = "category_in_use"
    default_message = "The category cannot be deleted because tasks reference it"


class RoleInUse(TaskHubError):
    status_code = 409
    code = "role_in_use"
    default_message = "The role cannot be deleted because users hold it"


class Conflict(TaskHubError):
    status_code = 409
    code = "conflict"
    default_message = "The resource was modified concurrently, retry the request"


class ValidationError(TaskHubError):
    status_code = 422
    code = "validation_error"
    default_message = "Invalid input"


class CannotDeleteSelf(TaskHubError):
    code = "cannot_delete_self"
    default_message = "You cannot delete your own account"


class UserHasTasks(TaskHubError):
    code = "user_has_tasks"
    default_message = "The user cannot be deleted because tasks reference them"


class UserOwnsTeams(TaskHubError):
    code = "user_owns_teams"
    default_message = "The user owns teams; transfer their ownership first"
