"""
api/routes/v1/roles.py -- Role menu grants and role/menu deletion.

Routes:
  GET    /api/v1/roles/{role_id}/menus   -- every menu + the role's granted ids
  PUT    /api/v1/roles/{role_id}/menus   -- replace the role's grants
  POST   /api/v1/roles/delete            -- delete roles no user holds
  DELETE /api/v1/menus/{menu_id}         -- delete a menu with no children
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import DeletedResponse, IdsRequest, MenuRow, MessageResponse, RoleMenusResponse, RoleMenusUpdate
from auth.dependencies import require_permission
from auth.permissions import MENU_DELETE, ROLE_MENUS_READ, ROLE_MENUS_UPDATE, ROLES_DELETE
from auth.service import AccountService

# Auth policy: every route names its own permission key from auth.permissions.
# Handlers do not read the claims, so the check sits in the decorator.
router = APIRouter()


@router.get(
    "/roles/{role_id}/menus",
    response_model=RoleMenusResponse,
    dependencies=[Depends(require_permission(ROLE_MENUS_READ))],
)
def query_role_menu(request: Request, role_id: int) -> RoleMenusResponse:
    """Return the grant editor payload. Role 1 reports every menu as granted."""
    accounts: AccountService = request.app.state.accounts
    menus, menu_ids = accounts.query_role_menus(role_id)
    return RoleMenusResponse(menus=[MenuRow.from_menu(m) for m in menus], menu_ids=menu_ids)


@router.put(
    "/roles/{role_id}/menus",
    response_model=MessageResponse,
    dependencies=[Depends(require_permission(ROLE_MENUS_UPDATE))],
)
def update_role_menu(request: Request, role_id: int, body: RoleMenusUpdate) -> MessageResponse:
    accounts: AccountService = request.app.state.accounts
    accounts.replace_role_menus(role_id, body.menu_ids)
    return MessageResponse(message="Role menus updated.")


@router.post(
    "/roles/delete",
    response_model=DeletedResponse,
    dependencies=[Depends(require_permission(ROLES_DELETE))],
)
def delete_role(request: Request, body: IdsRequest) -> DeletedResponse:
    accounts: AccountService = request.app.state.accounts
    return DeletedResponse(deleted=accounts.delete_roles(body.ids))


@router.delete(
    "/menus/{menu_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_permission(MENU_DELETE))],
)
def delete_menu(request: Request, menu_id: int) -> MessageResponse:
    accounts: AccountService = request.app.state.accounts
    accounts.delete_menu(menu_id)
    return MessageResponse(message="Menu deleted.")
