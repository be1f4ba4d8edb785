"""
api/routes/v1/users.py -- User role assignment, deletion and password change.

Routes:
  GET  /api/v1/users/{user_id}/roles      -- every role + the user's role ids
  PUT  /api/v1/users/{user_id}/roles      -- replace the user's role ids
  POST /api/v1/users/delete               -- delete users by id
  POST /api/v1/users/{user_id}/password   -- change own password

Reserved ids [R1]/[R2] are enforced in AccountService before the store is
touched; these handlers only translate between HTTP and the service.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import (
    DeletedResponse,
    IdsRequest,
    MessageResponse,
    PasswordUpdate,
    RoleRow,
    UserRolesResponse,
    UserRolesUpdate,
)
from auth.dependencies import get_current_claims, require_permission
from auth.models import TokenClaims
from auth.permissions import USER_ROLES_READ, USER_ROLES_UPDATE, USERS_DELETE
from auth.service import AccountService
from core.errors import AuthorizationError

# Auth policy:
# - role and delete routes: require_permission(<key>) -- each route names its
#   own key from auth.permissions; reading and replacing roles are separate keys
# - password route: any valid token, but only for the caller's own user id
router = APIRouter()


@router.get("/users/{user_id}/roles", response_model=UserRolesResponse)
def query_user_role(
    request: Request,
    user_id: int,
    claims: TokenClaims = Depends(require_permission(USER_ROLES_READ)),
) -> UserRolesResponse:
    accounts: AccountService = request.app.state.accounts
    roles, role_ids = accounts.query_user_roles(user_id)
    return UserRolesResponse(roles=[RoleRow.from_role(r) for r in roles], role_ids=role_ids)


@router.put("/users/{user_id}/roles", response_model=MessageResponse)
def update_user_role(
    request: Request,
    user_id: int,
    body: UserRolesUpdate,
    claims: TokenClaims = Depends(require_permission(USER_ROLES_UPDATE)),
) -> MessageResponse:
    """Replace every role of user_id. User 1 and role 1 are rejected with 400."""
    accounts: AccountService = request.app.state.accounts
    accounts.replace_user_roles(user_id, body.role_ids)
    return MessageResponse(message="User roles updated.")


@router.post("/users/delete", response_model=DeletedResponse)
def delete_user(
    request: Request,
    body: IdsRequest,
    claims: TokenClaims = Depends(require_permission(USERS_DELETE)),
) -> DeletedResponse:
    """Delete users. The whole request is rejected if it names user 1."""
    accounts: AccountService = request.app.state.accounts
    return DeletedResponse(deleted=accounts.delete_users(body.ids))


@router.post("/users/{user_id}/password", response_model=MessageResponse)
def update_user_password(
    request: Request,
    user_id: int,
    body: PasswordUpdate,
    claims: TokenClaims = Depends(get_current_claims),
) -> MessageResponse:
    if user_id != claims.user_id:
        raise AuthorizationError("You can only change your own password.")
    accounts: AccountService = request.app.state.accounts
    accounts.change_password(user_id, body.old_password, body.new_password)
    return MessageResponse(message="Password updated.")
