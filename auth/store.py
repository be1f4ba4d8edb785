"""
auth/store.py -- SQLAlchemy Core persistence layer for the permission graph.

Pattern: Repository + Data Mapper. PermissionStore is the repository;
_row_to_user / _row_to_role / _row_to_menu are the mappers. The resolver,
the service and the route layer never touch SQL directly.

Relations:
  sys_user       -- operators (mobile is the login key)
  sys_role       -- roles; id 1 is the superadmin role
  sys_menu       -- navigation tree + gated api_url per node
  sys_user_role  -- user <-> role
  sys_role_menu  -- role <-> menu

Errors:
  Every query runs inside _connect(). SQLAlchemyError becomes StoreError
  (driver detail logged, never returned). IntegrityError becomes
  ValidationError with code "conflict". Callers can therefore tell a lookup
  failure apart from an empty result.

Concurrency:
  The store holds no state besides the engine; each method checks out its own
  pooled connection. Multi-statement writes (replace_*) commit once so a
  concurrent reader sees either the old or the new grant set.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import STATUS_ENABLED, Menu, Role, User
from core.config import get_settings
from core.errors import StoreError, ValidationError

logger = logging.getLogger("consoleguard.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "sys_user",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("mobile", String(32), nullable=False, unique=True),
    Column("user_name", String(64), nullable=False),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("status", Integer, nullable=False, server_default="1"),
    Column("sort", Integer, nullable=False, server_default="1"),
    Column("remark", String(255)),
    Column("create_time", String(32), nullable=False),
    Column("update_time", String(32), nullable=False),
)

_roles = Table(
    "sys_role",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role_name", String(64), nullable=False),
    Column("status", Integer, nullable=False, server_default="1"),
    Column("sort", Integer, nullable=False, server_default="1"),
    Column("remark", String(255)),
    Column("create_time", String(32), nullable=False),
    Column("update_time", String(32), nullable=False),
)

_menus = Table(
    "sys_menu",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("menu_name", String(64), nullable=False),
    Column("menu_type", Integer, nullable=False),  # 1 directory, 2 page, 3 button
    Column("parent_id", Integer, nullable=False, server_default="0"),
    Column("menu_url", String(255), nullable=False, server_default=""),
    Column("api_url", String(255), nullable=False, server_default=""),
    Column("menu_icon", String(255)),
    Column("status", Integer, nullable=False, server_default="1"),
    Column("sort", Integer, nullable=False, server_default="1"),
    Column("remark", String(255)),
    Column("create_time", String(32), nullable=False),
    Column("update_time", String(32), nullable=False),
)

_user_roles = Table(
    "sys_user_role",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("role_id", Integer, nullable=False, index=True),
    Column("create_time", String(32), nullable=False),
    UniqueConstraint("user_id", "role_id", name="uq_user_role"),
)

_role_menus = Table(
    "sys_role_menu",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role_id", Integer, nullable=False, index=True),
    Column("menu_id", Integer, nullable=False, index=True),
    Column("create_time", String(32), nullable=False),
    UniqueConstraint("role_id", "menu_id", name="uq_role_menu"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so menu-tree reads do not block on grant writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _unique_ids(ids: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    result: list[int] = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            result.append(i)
    return result


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PermissionStore:
    """Repository for users, roles, menus and their associations.

    Usage:
        store = PermissionStore("sqlite:///:memory:")
        uid = store.create_user(User(mobile="13800000000", user_name="ops", password=hash_password("pw")))
        store.replace_user_roles(uid, [2])
        urls = store.list_api_urls_for_user(uid)
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.error("Could not initialise permission schema: %s", exc)
            raise StoreError("Permission store unavailable.") from exc

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError as exc:
            logger.warning("Integrity violation: %s", exc.orig)
            raise ValidationError("Record conflicts with an existing row.", code="conflict") from exc
        except SQLAlchemyError as exc:
            logger.error("Permission store query failed: %s", exc)
            raise StoreError("Permission store unavailable.") from exc

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StoreError:
            return False
        return True

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a user and return its id. Pass user.id to pin a reserved id."""
        now = _now_iso()
        values = {
            "mobile": user.mobile,
            "user_name": user.user_name,
            "password": user.password,
            "status": user.status,
            "sort": user.sort,
            "remark": user.remark,
            "create_time": now,
            "update_time": now,
        }
        if user.id is not None:
            values["id"] = user.id
        with self._connect() as conn:
            result = conn.execute(_users.insert().values(**values))
            conn.commit()
            return result.inserted_primary_key[0]

    def get_user_by_mobile(self, mobile: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.mobile == mobile)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_id(self, user_id: int) -> User | None:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_password(self, user_id: int, hashed_password: str) -> bool:
        """Replace the stored hash. Returns False if user_id was not found."""
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(password=hashed_password, update_time=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_users(self, user_ids: Iterable[int]) -> int:
        """Delete users and their role assignments. Returns the number of users removed.

        The reserved-id check is the caller's job (AccountService.delete_users).
        """
        ids = _unique_ids(user_ids)
        if not ids:
            return 0
        with self._connect() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id.in_(ids)))
            result = conn.execute(_users.delete().where(_users.c.id.in_(ids)))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(self, role: Role) -> int:
        now = _now_iso()
        values = {
            "role_name": role.role_name,
            "status": role.status,
            "sort": role.sort,
            "remark": role.remark,
            "create_time": now,
            "update_time": now,
        }
        if role.id is not None:
            values["id"] = role.id
        with self._connect() as conn:
            result = conn.execute(_roles.insert().values(**values))
            conn.commit()
            return result.inserted_primary_key[0]

    def list_roles(self) -> list[Role]:
        """Return every role ordered by sort, then id."""
        with self._connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.sort, _roles.c.id)).fetchall()
        return [_row_to_role(r) for r in rows]

    def list_role_ids(self, user_id: int) -> list[int]:
        """Return the role ids assigned to a user (ascending)."""
        with self._connect() as conn:
            rows = conn.execute(
                select(_user_roles.c.role_id).where(_user_roles.c.user_id == user_id).order_by(_user_roles.c.role_id)
            ).fetchall()
        return [r.role_id for r in rows]

    def has_role(self, user_id: int, role_id: int) -> bool:
        with self._connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(_user_roles)
                .where((_user_roles.c.user_id == user_id) & (_user_roles.c.role_id == role_id))
            ).scalar()
        return (count or 0) > 0

    def replace_user_roles(self, user_id: int, role_ids: Iterable[int]) -> None:
        """Replace every role assignment for user_id in a single transaction."""
        ids = _unique_ids(role_ids)
        now = _now_iso()
        with self._connect() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            if ids:
                conn.execute(
                    _user_roles.insert(),
                    [{"user_id": user_id, "role_id": rid, "create_time": now} for rid in ids],
                )
            conn.commit()

    def count_role_assignments(self, role_ids: Iterable[int]) -> int:
        """Return how many user_role rows reference any of role_ids."""
        ids = _unique_ids(role_ids)
        if not ids:
            return 0
        with self._connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(_user_roles).where(_user_roles.c.role_id.in_(ids))
            ).scalar()
        return count or 0

    def delete_roles(self, role_ids: Iterable[int]) -> int:
        """Delete roles and their menu grants. Returns the number of roles removed."""
        ids = _unique_ids(role_ids)
        if not ids:
            return 0
        with self._connect() as conn:
            conn.execute(_role_menus.delete().where(_role_menus.c.role_id.in_(ids)))
            result = conn.execute(_roles.delete().where(_roles.c.id.in_(ids)))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Menus
    # ------------------------------------------------------------------

    def create_menu(self, menu: Menu) -> int:
        now = _now_iso()
        values = {
            "menu_name": menu.menu_name,
            "menu_type": menu.menu_type,
            "parent_id": menu.parent_id,
            "menu_url": menu.menu_url,
            "api_url": menu.api_url,
            "menu_icon": menu.menu_icon,
            "status": menu.status,
            "sort": menu.sort,
            "remark": menu.remark,
            "create_time": now,
            "update_time": now,
        }
        if menu.id is not None:
            values["id"] = menu.id
        with self._connect() as conn:
            result = conn.execute(_menus.insert().values(**values))
            conn.commit()
            return result.inserted_primary_key[0]

    def get_menu(self, menu_id: int) -> Menu | None:
        with self._connect() as conn:
            row = conn.execute(_menus.select().where(_menus.c.id == menu_id)).fetchone()
        return _row_to_menu(row) if row is not None else None

    def list_menus(self) -> list[Menu]:
        """Return every menu, regardless of status, ordered by sort then id."""
        with self._connect() as conn:
            rows = conn.execute(_menus.select().order_by(_menus.c.sort, _menus.c.id)).fetchall()
        return [_row_to_menu(r) for r in rows]

    def list_menu_ids_for_role(self, role_id: int) -> list[int]:
        with self._connect() as conn:
            rows = conn.execute(
                select(_role_menus.c.menu_id).where(_role_menus.c.role_id == role_id).order_by(_role_menus.c.menu_id)
            ).fetchall()
        return [r.menu_id for r in rows]

    def list_menus_for_user(self, user_id: int) -> list[Menu]:
        """Return the menus granted to user_id through user_role -> role -> role_menu.

        Inner joins: an assignment to a deleted role, or a grant of a deleted
        menu, contributes nothing. Menu status is not filtered here.
        """
        stmt = (
            select(_menus)
            .select_from(
                _user_roles.join(_roles, _roles.c.id == _user_roles.c.role_id)
                .join(_role_menus, _role_menus.c.role_id == _roles.c.id)
                .join(_menus, _menus.c.id == _role_menus.c.menu_id)
            )
            .where(_user_roles.c.user_id == user_id)
            .distinct()
            .order_by(_menus.c.id)
        )
        with self._connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_menu(r) for r in rows]

    def list_api_urls(self) -> list[str]:
        """Return every distinct non-empty api_url in sys_menu."""
        with self._connect() as conn:
            rows = conn.execute(select(_menus.c.api_url).where(_menus.c.api_url != "").distinct()).fetchall()
        return [r.api_url for r in rows]

    def list_api_urls_for_user(self, user_id: int) -> list[str]:
        """Return distinct non-empty api_url values granted to user_id."""
        stmt = (
            select(_menus.c.api_url)
            .select_from(
                _user_roles.join(_roles, _roles.c.id == _user_roles.c.role_id)
                .join(_role_menus, _role_menus.c.role_id == _roles.c.id)
                .join(_menus, _menus.c.id == _role_menus.c.menu_id)
            )
            .where((_user_roles.c.user_id == user_id) & (_menus.c.api_url != ""))
            .distinct()
        )
        with self._connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [r.api_url for r in rows]

    def list_enabled_menus(self, menu_ids: Iterable[int]) -> list[Menu]:
        """Return enabled menus whose id is in menu_ids, ordered by sort ascending.

        Ids with no matching row (parent 0, dangling parent references) are
        silently absent from the result.
        """
        ids = _unique_ids(menu_ids)
        if not ids:
            return []
        with self._connect() as conn:
            rows = conn.execute(
                _menus.select()
                .where(_menus.c.id.in_(ids) & (_menus.c.status == STATUS_ENABLED))
                .order_by(_menus.c.sort, _menus.c.id)
            ).fetchall()
        return [_row_to_menu(r) for r in rows]

    def replace_role_menus(self, role_id: int, menu_ids: Iterable[int]) -> None:
        """Replace every menu grant for role_id in a single transaction."""
        ids = _unique_ids(menu_ids)
        now = _now_iso()
        with self._connect() as conn:
            conn.execute(_role_menus.delete().where(_role_menus.c.role_id == role_id))
            if ids:
                conn.execute(
                    _role_menus.insert(),
                    [{"role_id": role_id, "menu_id": mid, "create_time": now} for mid in ids],
                )
            conn.commit()

    def count_children(self, menu_id: int) -> int:
        with self._connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(_menus).where(_menus.c.parent_id == menu_id)
            ).scalar()
        return count or 0

    def delete_menu(self, menu_id: int) -> bool:
        """Delete one menu and every grant of it. Returns False if not found.

        The no-children check is the caller's job (AccountService.delete_menu).
        """
        with self._connect() as conn:
            conn.execute(_role_menus.delete().where(_role_menus.c.menu_id == menu_id))
            result = conn.execute(_menus.delete().where(_menus.c.id == menu_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        mobile=row.mobile,
        user_name=row.user_name,
        password=row.password,
        status=row.status,
        sort=row.sort,
        remark=row.remark,
        create_time=row.create_time,
        update_time=row.update_time,
    )


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        role_name=row.role_name,
        status=row.status,
        sort=row.sort,
        remark=row.remark,
        create_time=row.create_time,
        update_time=row.update_time,
    )


def _row_to_menu(row) -> Menu:
    return Menu(
        id=row.id,
        menu_name=row.menu_name,
        menu_type=row.menu_type,
        parent_id=row.parent_id,
        menu_url=row.menu_url or "",
        api_url=row.api_url or "",
        menu_icon=row.menu_icon,
        status=row.status,
        sort=row.sort,
        remark=row.remark,
        create_time=row.create_time,
        update_time=row.update_time,
    )
