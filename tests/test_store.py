"""Unit tests for auth/store.py -- PermissionStore queries and writes.

Covers:
- list_api_urls_for_user() follows user_role -> role_menu -> menu and skips empty urls
- list_menus_for_user() returns each granted menu once, including disabled ones
- list_enabled_menus() drops disabled and unknown ids and orders by sort
- replace_* calls fully replace the previous association set
- delete_users / delete_roles / delete_menu clean up their association rows
- duplicate mobile raises ValidationError(code="conflict")
"""

import pytest
from sqlalchemy.exc import OperationalError

from auth.models import MENU_TYPE_PAGE, Menu, Role, User
from core.errors import StoreError, ValidationError


def test_api_urls_for_user_follow_grants(console):
    assert set(console.list_api_urls_for_user(2)) == {"GET /api/v1/users/{user_id}/roles", "GET /api/v1/reports"}


def test_api_urls_for_user_without_roles_is_empty(console):
    assert console.list_api_urls_for_user(3) == []
    assert console.list_api_urls_for_user(4) == []


def test_list_api_urls_skips_empty_values(console):
    urls = console.list_api_urls()
    assert "" not in urls
    assert len(urls) == 4


def test_menus_for_user_deduplicates_across_roles(console):
    """Two roles granting the same menu yield it once."""
    console.create_role(Role(id=9, role_name="overlap"))
    console.replace_role_menus(9, [3])
    console.replace_user_roles(2, [2, 9])
    ids = [m.id for m in console.list_menus_for_user(2)]
    assert ids == [3, 7]


def test_menus_for_user_ignores_deleted_role(console):
    console.replace_user_roles(3, [42])
    assert console.list_menus_for_user(3) == []


def test_list_enabled_menus_filters_and_orders(console):
    menus = console.list_enabled_menus([7, 6, 2, 1, 999])
    assert [m.id for m in menus] == [1, 2, 7], "disabled 6 and unknown 999 are dropped; sorted by sort"


def test_list_enabled_menus_empty_input(console):
    assert console.list_enabled_menus([]) == []


def test_replace_user_roles_replaces_previous_set(console):
    console.replace_user_roles(2, [3])
    assert console.list_role_ids(2) == [3]
    console.replace_user_roles(2, [])
    assert console.list_role_ids(2) == []


def test_replace_role_menus_deduplicates(console):
    console.replace_role_menus(3, [5, 5, 8])
    assert console.list_menu_ids_for_role(3) == [5, 8]


def test_has_role(console):
    assert console.has_role(1, 1) is True
    assert console.has_role(2, 1) is False


def test_delete_users_removes_assignments(console):
    assert console.delete_users([2, 2]) == 1
    assert console.get_user_by_id(2) is None
    assert console.list_role_ids(2) == []


def test_delete_roles_removes_grants(console):
    assert console.count_role_assignments([2]) == 2
    console.replace_user_roles(2, [])
    console.replace_user_roles(5, [])
    assert console.delete_roles([2]) == 1
    assert console.list_menu_ids_for_role(2) == []


def test_delete_menu_removes_grants(console):
    assert console.count_children(7) == 0
    assert console.delete_menu(7) is True
    assert 7 not in console.list_menu_ids_for_role(2)
    assert console.delete_menu(7) is False


def test_count_children(console):
    assert console.count_children(1) == 2
    assert console.count_children(2) == 2


def test_update_password(console):
    assert console.update_password(2, "new-hash") is True
    assert console.get_user_by_id(2).password == "new-hash"
    assert console.update_password(404, "x") is False


def test_get_user_by_mobile(console):
    user = console.get_user_by_mobile("10000000002")
    assert user is not None
    assert user.id == 2
    assert user.create_time is not None
    assert console.get_user_by_mobile("19999999999") is None


def test_duplicate_mobile_is_conflict(console):
    with pytest.raises(ValidationError) as exc_info:
        console.create_user(User(mobile="10000000002", user_name="clone", password="x"))
    assert exc_info.value.code == "conflict"


def test_create_menu_defaults(store):
    menu_id = store.create_menu(Menu(menu_name="Loose", menu_type=MENU_TYPE_PAGE))
    menu = store.get_menu(menu_id)
    assert menu.parent_id == 0
    assert menu.api_url == ""
    assert menu.status == 1


def test_ping(store):
    assert store.ping() is True


def test_driver_failure_becomes_store_error(store, monkeypatch):
    """A driver-level failure surfaces as StoreError, not an empty result."""

    def _boom():
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store.engine, "connect", _boom)
    with pytest.raises(StoreError):
        store.list_api_urls_for_user(2)
    assert store.ping() is False
