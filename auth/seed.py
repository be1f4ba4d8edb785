"""
auth/seed.py -- First-run data: the reserved superadmin and the console's own menu tree.

A fresh database has no menus, so even the superadmin would resolve to an
empty permission set and be refused at login. seed_defaults() creates:

  * role 1 "superadmin" and user 1, holding role 1;
  * a "System" directory with one page per management screen and one button
    per permission key in auth.permissions, so every protected route can be
    granted on its own.

Idempotent: existing rows (matched by reserved id, or by api_url for buttons)
are left alone, so running it twice is safe.
"""

from __future__ import annotations

import logging

from auth.models import (
    MENU_TYPE_BUTTON,
    MENU_TYPE_DIRECTORY,
    MENU_TYPE_PAGE,
    SUPERADMIN_ROLE_ID,
    SUPERADMIN_USER_ID,
    Menu,
    Role,
    User,
)
from auth.permissions import (
    MENU_DELETE,
    ROLE_MENUS_READ,
    ROLE_MENUS_UPDATE,
    ROLES_DELETE,
    USER_ROLES_READ,
    USER_ROLES_UPDATE,
    USERS_DELETE,
)
from auth.store import PermissionStore
from auth.tokens import hash_password

logger = logging.getLogger("consoleguard.auth.seed")

# (page name, route path, sort, [(button name, api_url)])
DEFAULT_PAGES: list[tuple[str, str, int, list[tuple[str, str]]]] = [
    (
        "Users",
        "/system/users",
        1,
        [
            ("View user roles", USER_ROLES_READ),
            ("Edit user roles", USER_ROLES_UPDATE),
            ("Delete users", USERS_DELETE),
        ],
    ),
    (
        "Roles",
        "/system/roles",
        2,
        [
            ("View role menus", ROLE_MENUS_READ),
            ("Edit role menus", ROLE_MENUS_UPDATE),
            ("Delete roles", ROLES_DELETE),
        ],
    ),
    (
        "Menus",
        "/system/menus",
        3,
        [
            ("Delete menu", MENU_DELETE),
        ],
    ),
]


def seed_defaults(store: PermissionStore, mobile: str, password: str, user_name: str = "superadmin") -> bool:
    """Create the superadmin account and default menus. Returns True if user 1 was created."""
    created = False
    if not any(r.id == SUPERADMIN_ROLE_ID for r in store.list_roles()):
        store.create_role(Role(id=SUPERADMIN_ROLE_ID, role_name="superadmin", sort=0, remark="reserved"))
        logger.info("Created superadmin role")

    if store.get_user_by_id(SUPERADMIN_USER_ID) is None:
        store.create_user(
            User(id=SUPERADMIN_USER_ID, mobile=mobile, user_name=user_name, password=hash_password(password))
        )
        created = True
        logger.info("Created superadmin user (mobile %s)", mobile)
    if not store.has_role(SUPERADMIN_USER_ID, SUPERADMIN_ROLE_ID):
        store.replace_user_roles(SUPERADMIN_USER_ID, [SUPERADMIN_ROLE_ID])

    existing = store.list_menus()
    known_urls = {m.api_url for m in existing if m.api_url}
    system = next((m for m in existing if m.parent_id == 0 and m.menu_url == "/system"), None)
    if system is not None:
        system_id = system.id
    else:
        system_id = store.create_menu(
            Menu(menu_name="System", menu_type=MENU_TYPE_DIRECTORY, menu_url="/system", menu_icon="setting", sort=1)
        )
    pages_by_url = {m.menu_url: m.id for m in existing if m.menu_type == MENU_TYPE_PAGE}

    for page_name, page_url, sort, buttons in DEFAULT_PAGES:
        page_id = pages_by_url.get(page_url) or store.create_menu(
            Menu(menu_name=page_name, menu_type=MENU_TYPE_PAGE, parent_id=system_id, menu_url=page_url, sort=sort)
        )
        for i, (button_name, api_url) in enumerate(buttons, start=1):
            if api_url in known_urls:
                continue
            store.create_menu(
                Menu(menu_name=button_name, menu_type=MENU_TYPE_BUTTON, parent_id=page_id, api_url=api_url, sort=i)
            )
    return created
