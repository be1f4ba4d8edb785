"""Unit tests for auth/seed.py -- first-run superadmin and default menus.

Covers:
- seed_defaults() creates user 1 holding role 1 with a bcrypt password
- every protected route key is present as a button api_url, read and
  update as separate buttons
- a second run creates nothing new
- the seeded superadmin can log in and sees the System tree
"""

from auth.models import MENU_TYPE_BUTTON
from auth.permissions import USER_ROLES_READ, USER_ROLES_UPDATE, USERS_DELETE
from auth.resolver import PermissionResolver
from auth.seed import DEFAULT_PAGES, seed_defaults
from auth.service import AccountService
from auth.tokens import verify_password


def test_creates_superadmin(store):
    assert seed_defaults(store, "13800000000", "change-me") is True
    user = store.get_user_by_id(1)
    assert user.mobile == "13800000000"
    assert user.user_name == "superadmin"
    assert verify_password("change-me", user.password)
    assert store.list_role_ids(1) == [1]


def test_every_button_url_seeded(store):
    seed_defaults(store, "13800000000", "change-me")
    expected = {url for _, _, _, buttons in DEFAULT_PAGES for _, url in buttons}
    seeded = {m.api_url for m in store.list_menus() if m.menu_type == MENU_TYPE_BUTTON}
    assert seeded == expected


def test_second_run_is_noop(store):
    seed_defaults(store, "13800000000", "change-me")
    before = len(store.list_menus())
    assert seed_defaults(store, "13900000000", "other") is False
    assert len(store.list_menus()) == before
    assert store.get_user_by_id(1).mobile == "13800000000", "existing superadmin is left alone"


def test_seeded_superadmin_can_log_in(store, tokens):
    seed_defaults(store, "13800000000", "change-me", "root")
    accounts = AccountService(store, PermissionResolver(store), tokens)
    token, user = accounts.login("13800000000", "change-me")
    assert user.user_name == "root"
    assert {USER_ROLES_READ, USER_ROLES_UPDATE, USERS_DELETE} <= tokens.verify(token).permissions

    tree = PermissionResolver(store).resolve_menu_tree(1)
    assert tree.menu_nodes[0].menu_name == "System"
    assert all(node.parent_id in (0, tree.menu_nodes[0].id) for node in tree.menu_nodes)


def test_read_and_update_are_separate_buttons(store):
    seed_defaults(store, "13800000000", "change-me")
    names = {m.api_url: m.menu_name for m in store.list_menus() if m.menu_type == MENU_TYPE_BUTTON}
    assert names[USER_ROLES_READ] == "View user roles"
    assert names[USER_ROLES_UPDATE] == "Edit user roles"
