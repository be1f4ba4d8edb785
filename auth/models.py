"""
auth/models.py -- Domain dataclasses for the permission graph.

Pattern: Data class (pure data container, zero logic). The store maps rows
into these; the resolver and service do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Reserved ids. Not enforced by a DB constraint -- the service layer guards them.
SUPERADMIN_USER_ID = 1
SUPERADMIN_ROLE_ID = 1

STATUS_ENABLED = 1
STATUS_DISABLED = 0

MENU_TYPE_DIRECTORY = 1
MENU_TYPE_PAGE = 2
MENU_TYPE_BUTTON = 3


@dataclass
class User:
    """A console operator.

    password holds a bcrypt hash, never plaintext. mobile is the login key.
    """

    mobile: str
    user_name: str
    password: str
    id: int | None = None
    status: int = STATUS_ENABLED
    sort: int = 1
    remark: str | None = None
    create_time: str | None = None
    update_time: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ENABLED


@dataclass
class Role:
    role_name: str
    id: int | None = None
    status: int = STATUS_ENABLED
    sort: int = 1
    remark: str | None = None
    create_time: str | None = None
    update_time: str | None = None


@dataclass
class Menu:
    """A node in the console navigation tree.

    parent_id == 0 marks a root. menu_type is one of MENU_TYPE_*; button nodes
    never render in the navigation and exist to gate an api_url. api_url is ""
    for pure UI nodes.
    """

    menu_name: str
    menu_type: int
    id: int | None = None
    parent_id: int = 0
    api_url: str = ""
    menu_url: str = ""  # front-end route path
    menu_icon: str | None = None
    status: int = STATUS_ENABLED
    sort: int = 1
    remark: str | None = None
    create_time: str | None = None
    update_time: str | None = None

    @property
    def is_button(self) -> bool:
        return self.menu_type == MENU_TYPE_BUTTON


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried inside a verified bearer token."""

    user_id: int
    username: str
    permissions: frozenset[str]


@dataclass
class MenuTree:
    """What a user sees: ordered navigation nodes plus every gated api_url."""

    menu_nodes: list[Menu] = field(default_factory=list)
    button_urls: list[str] = field(default_factory=list)
