"""
auth/permissions.py -- Permission keys for the protected API routes.

A key is "<METHOD> <full route template>", e.g.
"PUT /api/v1/users/{user_id}/roles". Keys are stored in sys_menu.api_url on
button nodes, embedded in tokens at login, and named explicitly by each
route's require_permission() dependency. Reading and replacing the same
association are separate keys so a role can be granted one without the other.

Layer rule: no imports from api/. api/ mounts its routers under API_PREFIX.
"""

API_PREFIX = "/api/v1"


def api_key(method: str, path: str) -> str:
    """Build the permission key for a route path relative to API_PREFIX."""
    return f"{method.upper()} {API_PREFIX}{path}"


USER_ROLES_READ = api_key("GET", "/users/{user_id}/roles")
USER_ROLES_UPDATE = api_key("PUT", "/users/{user_id}/roles")
USERS_DELETE = api_key("POST", "/users/delete")

ROLE_MENUS_READ = api_key("GET", "/roles/{role_id}/menus")
ROLE_MENUS_UPDATE = api_key("PUT", "/roles/{role_id}/menus")
ROLES_DELETE = api_key("POST", "/roles/delete")

MENU_DELETE = api_key("DELETE", "/menus/{menu_id}")
