"""
tests/conftest.py -- Shared test fixtures for ConsoleGuard.

This module provides:
  - store: empty in-memory PermissionStore (one per test)
  - console: PermissionStore pre-loaded with the reference permission graph
  - tokens: TokenService with a fixed test secret
  - api_client: TestClient over the real app with a patched lifespan

Reference graph (ids are pinned so tests can name them):

  menus                                   type       sort  status  api_url
    1 System        parent 0              directory  1     on
    2 Users         parent 1              page       2     on
    3 Role grants   parent 2              button     1     on      USERS_ROLES_URL
    4 Roles         parent 1              page       3     on
    5 Menu grants   parent 4              button     1     on      ROLES_MENUS_URL
    6 Reports       parent 0              directory  4     OFF
    7 Daily report  parent 6              page       5     on      REPORTS_URL
    8 Delete users  parent 2              button     2     on      USERS_DELETE_URL

  roles: 1 superadmin (no grants), 2 operator (grants 3, 7), 3 empty (no grants)

  users: 1 superadmin [1], 2 operator [2], 3 no roles [], 4 empty role [3],
         5 disabled operator [2]

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API client because TestClient runs route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment must be set before any core/auth/api import so get_settings()
auto-generates SECRET_KEY and accepts the TestClient host.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_services
from auth.models import (
    MENU_TYPE_BUTTON,
    MENU_TYPE_DIRECTORY,
    MENU_TYPE_PAGE,
    STATUS_DISABLED,
    Menu,
    Role,
    User,
)
from auth.permissions import USER_ROLES_READ
from auth.seed import seed_defaults
from auth.store import PermissionStore
from auth.tokens import TokenService, hash_password

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
PASSWORD = "secret123"

USERS_ROLES_URL = "GET /api/v1/users/{user_id}/roles"
USERS_DELETE_URL = "POST /api/v1/users/delete"
ROLES_MENUS_URL = "GET /api/v1/roles/{role_id}/menus"
REPORTS_URL = "GET /api/v1/reports"

ALL_URLS = {USERS_ROLES_URL, USERS_DELETE_URL, ROLES_MENUS_URL, REPORTS_URL}

# One bcrypt hash shared by every fixture user -- hashing is deliberately slow.
_PASSWORD_HASH = hash_password(PASSWORD)


def build_console_graph(store: PermissionStore) -> PermissionStore:
    """Load the reference graph described in the module docstring."""
    store.create_role(Role(id=1, role_name="superadmin"))
    store.create_role(Role(id=2, role_name="operator"))
    store.create_role(Role(id=3, role_name="empty"))

    menus = [
        Menu(id=1, menu_name="System", menu_type=MENU_TYPE_DIRECTORY, parent_id=0, sort=1, menu_url="/system"),
        Menu(id=2, menu_name="Users", menu_type=MENU_TYPE_PAGE, parent_id=1, sort=2, menu_url="/system/users"),
        Menu(id=3, menu_name="Role grants", menu_type=MENU_TYPE_BUTTON, parent_id=2, sort=1, api_url=USERS_ROLES_URL),
        Menu(id=4, menu_name="Roles", menu_type=MENU_TYPE_PAGE, parent_id=1, sort=3, menu_url="/system/roles"),
        Menu(id=5, menu_name="Menu grants", menu_type=MENU_TYPE_BUTTON, parent_id=4, sort=1, api_url=ROLES_MENUS_URL),
        Menu(
            id=6,
            menu_name="Reports",
            menu_type=MENU_TYPE_DIRECTORY,
            parent_id=0,
            sort=4,
            menu_url="/reports",
            status=STATUS_DISABLED,
        ),
        Menu(
            id=7,
            menu_name="Daily report",
            menu_type=MENU_TYPE_PAGE,
            parent_id=6,
            sort=5,
            menu_url="/reports/daily",
            api_url=REPORTS_URL,
        ),
        Menu(id=8, menu_name="Delete users", menu_type=MENU_TYPE_BUTTON, parent_id=2, sort=2, api_url=USERS_DELETE_URL),
    ]
    for menu in menus:
        store.create_menu(menu)
    store.replace_role_menus(2, [3, 7])

    users = [
        (1, "10000000001", "root", 1, [1]),
        (2, "10000000002", "operator", 1, [2]),
        (3, "10000000003", "drifter", 1, []),
        (4, "10000000004", "hollow", 1, [3]),
        (5, "10000000005", "retired", STATUS_DISABLED, [2]),
    ]
    for uid, mobile, name, status, role_ids in users:
        store.create_user(User(id=uid, mobile=mobile, user_name=name, password=_PASSWORD_HASH, status=status))
        store.replace_user_roles(uid, role_ids)
    return store


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[PermissionStore, None, None]:
    s = PermissionStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def console(store: PermissionStore) -> PermissionStore:
    return build_console_graph(store)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET, expire_seconds=3600)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(store: PermissionStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test store into app.state so routes see an isolated
    database rather than the production one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_services(app, store, tokens)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, dict[str, str]], None, None]:
    """Yield (client, tokens) for API integration tests.

    tokens maps "root", "operator" and "rotator" to bearer tokens. The store is
    seeded with seed_defaults() (user 1 "root" as superadmin plus the console's
    own menu tree), an operator (user 2) whose role is granted only the
    "View user roles" button, a user without roles (3, "drifter") and a
    second operator (4, "rotator") reserved for password change round trips.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    store = PermissionStore(f"sqlite:///file:test_api_{suffix}?mode=memory&cache=shared&uri=true")
    tokens = TokenService(TEST_SECRET, expire_seconds=3600)

    seed_defaults(store, "10000000001", PASSWORD, "root")
    operator_role = store.create_role(Role(role_name="operator"))
    grant = next(m for m in store.list_menus() if m.api_url == USER_ROLES_READ)
    store.replace_role_menus(operator_role, [grant.id])
    operator_id = store.create_user(User(mobile="10000000002", user_name="operator", password=_PASSWORD_HASH))
    store.replace_user_roles(operator_id, [operator_role])
    store.create_user(User(mobile="10000000003", user_name="drifter", password=_PASSWORD_HASH))
    rotator_id = store.create_user(User(mobile="10000000004", user_name="rotator", password=_PASSWORD_HASH))
    store.replace_user_roles(rotator_id, [operator_role])

    root_token = tokens.issue(1, "root", [m.api_url for m in store.list_menus() if m.api_url])
    operator_token = tokens.issue(operator_id, "operator", [USER_ROLES_READ])
    rotator_token = tokens.issue(rotator_id, "rotator", [USER_ROLES_READ])

    app.router.lifespan_context = _patch_lifespan(store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, {"root": root_token, "operator": operator_token, "rotator": rotator_token}

    store.close()
