"""
auth/service.py -- Login and the guarded account/role/menu operations.

AccountService sits between the routes and the engine. It owns the rules the
store does not enforce:

  [R1] User 1 can never be deleted and its roles can never be replaced.
  [R2] Role 1 (superadmin) can never be handed out through the bulk
       replace call, and can never be deleted.
  [R3] A role still assigned to a user cannot be deleted.
  [R4] A menu with children cannot be deleted.

Every guard runs before the store is touched.

Login ordering:
  mobile lookup -> bcrypt check -> status -> permission resolution -> token.
  An unknown mobile still burns one bcrypt comparison so response time does
  not reveal which numbers exist [C1]. A user with an empty permission set
  gets a ValidationError with its own code; a store failure during
  resolution propagates as StoreError and is never reported as "no
  permissions".

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from auth.models import SUPERADMIN_ROLE_ID, SUPERADMIN_USER_ID, Menu, MenuTree, Role, TokenClaims, User
from auth.resolver import PermissionResolver
from auth.store import PermissionStore
from auth.tokens import TokenService, burn_password_check, hash_password, verify_password
from core.errors import AuthenticationError, NotFoundError, ValidationError

logger = logging.getLogger("consoleguard.auth.service")


class AccountService:
    def __init__(self, store: PermissionStore, resolver: PermissionResolver, tokens: TokenService) -> None:
        self.store = store
        self.resolver = resolver
        self.tokens = tokens

    # ------------------------------------------------------------------
    # Login / current user
    # ------------------------------------------------------------------

    def login(self, mobile: str, password: str) -> tuple[str, User]:
        """Authenticate by mobile + password and return (token, user)."""
        user = self.store.get_user_by_mobile(mobile)
        if user is None:
            burn_password_check(password)
            logger.warning("Login rejected: unknown mobile")
            raise NotFoundError("user not found")
        if not verify_password(password, user.password):
            logger.warning("Login rejected: bad password for user %s", user.id)
            raise AuthenticationError("password incorrect", reason="bad_credentials")
        if not user.is_active:
            logger.warning("Login rejected: user %s is disabled", user.id)
            raise AuthenticationError("user is disabled", reason="disabled")

        permissions = self.resolver.resolve_button_permissions(user.id)
        if not permissions:
            logger.warning("Login rejected: user %s has no permissions", user.id)
            raise ValidationError(
                "user has no assigned role or menu -- cannot log in",
                code="no_permissions",
            )

        token = self.tokens.issue(user.id, user.user_name, permissions)
        logger.info("User %s logged in with %d permissions", user.id, len(permissions))
        return token, user

    def current_user_menu(self, claims: TokenClaims) -> tuple[User, MenuTree]:
        """Return the token holder's user row and freshly resolved menu tree."""
        user = self.store.get_user_by_id(claims.user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user, self.resolver.resolve_menu_tree(user.id)

    def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        user = self.store.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        if not verify_password(old_password, user.password):
            # 400, not 401: the bearer session itself is still valid.
            raise ValidationError("old password incorrect", code="old_password_incorrect")
        self.store.update_password(user_id, hash_password(new_password))
        logger.info("Password changed for user %s", user_id)

    # ------------------------------------------------------------------
    # Users <-> roles
    # ------------------------------------------------------------------

    def query_user_roles(self, user_id: int) -> tuple[list[Role], list[int]]:
        """Return (every role, role ids assigned to user_id)."""
        return self.store.list_roles(), self.store.list_role_ids(user_id)

    def replace_user_roles(self, user_id: int, role_ids: Iterable[int]) -> None:
        role_ids = list(role_ids)
        if user_id == SUPERADMIN_USER_ID:
            logger.warning("Refused to replace roles of the superadmin user")
            raise ValidationError("the superadmin user's roles cannot be changed", code="reserved_user")
        if SUPERADMIN_ROLE_ID in role_ids:
            logger.warning("Refused to assign the superadmin role to user %s", user_id)
            raise ValidationError("the superadmin role cannot be assigned", code="reserved_role")
        if self.store.get_user_by_id(user_id) is None:
            raise NotFoundError("user not found")
        self.store.replace_user_roles(user_id, role_ids)
        logger.info("User %s roles replaced with %s", user_id, role_ids)

    def delete_users(self, user_ids: Iterable[int]) -> int:
        user_ids = list(user_ids)
        if SUPERADMIN_USER_ID in user_ids:
            logger.warning("Refused to delete the superadmin user")
            raise ValidationError("the superadmin user cannot be deleted", code="reserved_user")
        return self.store.delete_users(user_ids)

    # ------------------------------------------------------------------
    # Roles <-> menus
    # ------------------------------------------------------------------

    def query_role_menus(self, role_id: int) -> tuple[list[Menu], list[int]]:
        """Return (every menu, menu ids granted to role_id).

        The superadmin role reports every menu as granted, matching what the
        resolver actually gives it.
        """
        menus = self.store.list_menus()
        if role_id == SUPERADMIN_ROLE_ID:
            return menus, [m.id for m in menus]
        return menus, self.store.list_menu_ids_for_role(role_id)

    def replace_role_menus(self, role_id: int, menu_ids: Iterable[int]) -> None:
        menu_ids = list(menu_ids)
        self.store.replace_role_menus(role_id, menu_ids)
        logger.info("Role %s menus replaced (%d grants)", role_id, len(menu_ids))

    def delete_roles(self, role_ids: Iterable[int]) -> int:
        role_ids = list(role_ids)
        if SUPERADMIN_ROLE_ID in role_ids:
            raise ValidationError("the superadmin role cannot be deleted", code="reserved_role")
        if self.store.count_role_assignments(role_ids) > 0:
            raise ValidationError("role is assigned to users and cannot be deleted", code="role_in_use")
        return self.store.delete_roles(role_ids)

    def delete_menu(self, menu_id: int) -> None:
        if self.store.get_menu(menu_id) is None:
            raise NotFoundError("menu not found")
        if self.store.count_children(menu_id) > 0:
            raise ValidationError("menu has child menus and cannot be deleted", code="menu_has_children")
        self.store.delete_menu(menu_id)
        logger.info("Menu %s deleted", menu_id)
