#!/usr/bin/env python3
"""
ConsoleGuard -- operator accounts and role-based menu/API permissions.

Usage:
  python main.py init --mobile 13800000000 --password 'change-me'
  python main.py hash-password 'plaintext'
  python main.py permissions 42
  python main.py menu 42 --json

Notes:
  These commands ignore .env and SECRET_KEY. Pass --db to point at the
  same DATABASE_URL the API server uses.
"""

import argparse
import json
import sys
from typing import Optional

from auth.resolver import PermissionResolver
from auth.seed import seed_defaults
from auth.store import PermissionStore
from auth.tokens import hash_password
from core.config import DEFAULT_DB_URL
from core.errors import AccessControlError


def _open_store(db_url: Optional[str]) -> PermissionStore:
    # Not get_settings(): these commands must work without SECRET_KEY.
    return PermissionStore(db_url or DEFAULT_DB_URL)


def _cmd_init(args: argparse.Namespace) -> int:
    store = _open_store(args.db)
    try:
        created = seed_defaults(store, args.mobile, args.password, args.name)
    finally:
        store.close()
    if created:
        print(f"  Superadmin created (mobile {args.mobile}).")
    else:
        print("  Superadmin already exists; default menus checked.")
    return 0


def _cmd_hash_password(args: argparse.Namespace) -> int:
    print(hash_password(args.password))
    return 0


def _cmd_permissions(args: argparse.Namespace) -> int:
    store = _open_store(args.db)
    try:
        resolver = PermissionResolver(store)
        urls = sorted(resolver.resolve_button_permissions(args.user_id))
        superadmin = resolver.is_superadmin(args.user_id)
    finally:
        store.close()
    if args.json:
        print(json.dumps({"user_id": args.user_id, "superadmin": superadmin, "permissions": urls}, indent=2))
        return 0
    label = " (superadmin)" if superadmin else ""
    print(f"\n  User {args.user_id}{label}: {len(urls)} permission(s)")
    for url in urls:
        print(f"    {url}")
    return 0


def _cmd_menu(args: argparse.Namespace) -> int:
    store = _open_store(args.db)
    try:
        tree = PermissionResolver(store).resolve_menu_tree(args.user_id)
    finally:
        store.close()
    if args.json:
        nodes = [
            {"id": m.id, "parent_id": m.parent_id, "name": m.menu_name, "type": m.menu_type, "path": m.menu_url}
            for m in tree.menu_nodes
        ]
        print(json.dumps({"menu_nodes": nodes, "button_urls": tree.button_urls}, indent=2))
        return 0

    children: dict[int, list] = {}
    ids = {m.id for m in tree.menu_nodes}
    for m in tree.menu_nodes:
        # A parent that is not visible is rendered as a root.
        children.setdefault(m.parent_id if m.parent_id in ids else 0, []).append(m)

    def _print(parent_id: int, depth: int) -> None:
        for m in children.get(parent_id, []):
            print(f"  {'  ' * depth}- {m.menu_name} ({m.menu_url or '-'})")
            _print(m.id, depth + 1)

    print()
    _print(0, 0)
    print(f"\n  {len(tree.button_urls)} button url(s)")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="consoleguard",
        description="Bootstrap and inspect the ConsoleGuard permission store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", metavar="URL", help="SQLAlchemy database URL (default: ./consoleguard.db)")
    sub = parser.add_subparsers(dest="command")

    p_init = sub.add_parser("init", help="Create the schema, the superadmin account and the default menus")
    p_init.add_argument("--mobile", required=True, help="Login mobile number for user 1")
    p_init.add_argument("--password", required=True, help="Initial password for user 1")
    p_init.add_argument("--name", default="superadmin", help="Display name for user 1")
    p_init.set_defaults(func=_cmd_init)

    p_hash = sub.add_parser("hash-password", help="Print a bcrypt hash, e.g. to migrate a plaintext row")
    p_hash.add_argument("password")
    p_hash.set_defaults(func=_cmd_hash_password)

    p_perm = sub.add_parser("permissions", help="Print the api_urls a user would receive at login")
    p_perm.add_argument("user_id", type=int)
    p_perm.add_argument("--json", action="store_true", help="Output structured JSON")
    p_perm.set_defaults(func=_cmd_permissions)

    p_menu = sub.add_parser("menu", help="Print the navigation tree a user would see")
    p_menu.add_argument("user_id", type=int)
    p_menu.add_argument("--json", action="store_true", help="Output structured JSON")
    p_menu.set_defaults(func=_cmd_menu)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return

    try:
        sys.exit(args.func(args))
    except AccessControlError as exc:
        print(f"  [!] {exc.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
