from .tasks import router as tasks_router
from .teams import router as teams_router
from .categories import router as categories_router
from .roles import router as roles_router
from .users import router as users_router
from .dashboard import router as dashboard_router

# (router, prefix, tags)
all_routers = [
    (tasks_router, "/tasks", "Tasks"),
    (teams_router, "/teams", "Teams"),
    (categories_router, "/categories", "Categories"),
    (roles_router, "/roles", "Roles"),
    (users_router, "/users", "Users"),
    (dashboard_router, "/dashboard", "Dashboard"),
]
