"""
auth/resolver.py -- Compute what a user may see and call.

Two outputs, deliberately separate:

  button permissions -- a flat set of api_url strings. Computed at login and
      embedded in the token; every protected request is checked against it
      without touching the store.

  menu tree -- the ordered navigation nodes plus the button urls. Computed
      only when the console asks for the current user's menu, because the
      ancestor completion needs extra queries.

Superadmin (holds role id 1) is decided by an explicit has_role() lookup. A
failed lookup raises StoreError; it never downgrades a user to the
ordinary-user branch.

The resolver keeps no state besides the injected store, so one instance is
safe to share across concurrent requests. There is no cache: grant changes
are visible on the next login or menu query.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from auth.models import SUPERADMIN_ROLE_ID, MenuTree
from auth.store import PermissionStore

logger = logging.getLogger("consoleguard.auth.resolver")


def complete_ancestors(seeds: Iterable[int], parent_of: dict[int, int]) -> set[int]:
    """Return seeds plus every ancestor reachable through parent_of.

    A walk stops at a root (parent 0), at an id missing from parent_of (a
    dangling parent reference, treated as a root), or at an id already
    collected, which also makes a corrupt cyclic parent chain terminate.
    """
    collected: set[int] = set()
    for menu_id in seeds:
        current = menu_id
        while current and current in parent_of and current not in collected:
            collected.add(current)
            current = parent_of[current]
    return collected


class PermissionResolver:
    def __init__(self, store: PermissionStore) -> None:
        self.store = store

    def is_superadmin(self, user_id: int) -> bool:
        """Return True if the user holds the reserved superadmin role."""
        return self.store.has_role(user_id, SUPERADMIN_ROLE_ID)

    def resolve_button_permissions(self, user_id: int) -> set[str]:
        """Return every api_url the user may invoke.

        Superadmin gets every non-empty api_url in the system, whatever the
        role_menu grants say. Anyone else gets the non-empty api_urls reachable
        through user_role -> role_menu -> menu. No roles or no grants yields an
        empty set; store failures propagate as StoreError.
        """
        if self.is_superadmin(user_id):
            urls = self.store.list_api_urls()
        else:
            urls = self.store.list_api_urls_for_user(user_id)
        return {u for u in urls if u}

    def resolve_menu_tree(self, user_id: int) -> MenuTree:
        """Return the enabled navigation nodes and button urls for a user.

        Steps:
          1. candidates = all menus (superadmin) or the granted menus;
          2. button nodes contribute their api_url and are kept out of the
             navigation; directory and page nodes contribute their own id;
          3. tree completion: the parent chain of every candidate (a button's
             parent included) joins the id set, so a granted leaf is always
             reachable from a root even when its ancestors were never granted;
          4. re-read exactly those ids, enabled only, ordered by sort;
          5. any returned node with an api_url adds it to the button urls.
        """
        all_menus = self.store.list_menus()
        if self.is_superadmin(user_id):
            candidates = all_menus
        else:
            candidates = self.store.list_menus_for_user(user_id)

        button_urls: set[str] = set()
        seeds: set[int] = set()
        for menu in candidates:
            if menu.is_button:
                if menu.api_url:
                    button_urls.add(menu.api_url)
                if menu.parent_id:
                    seeds.add(menu.parent_id)
                continue
            seeds.add(menu.id)

        # Ancestors of a button are directories/pages; a button is never a parent
        # of a rendered node, so it cannot re-enter the id set here.
        parent_of = {m.id: m.parent_id for m in all_menus if not m.is_button}
        tree_ids = complete_ancestors(seeds, parent_of)

        nodes = self.store.list_enabled_menus(tree_ids)
        for menu in nodes:
            if menu.api_url:
                button_urls.add(menu.api_url)

        logger.debug(
            "Resolved menu tree for user %s: %d nodes, %d urls",
            user_id,
            len(nodes),
            len(button_urls),
        )
        return MenuTree(menu_nodes=nodes, button_urls=sorted(button_urls))
