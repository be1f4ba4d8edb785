"""
API request and response models for ConsoleGuard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Menu, Role
from auth.tokens import MAX_PASSWORD_BYTES

# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


def _dedupe(values: list[int]) -> list[int]:
    seen: set[int] = set()
    result: list[int] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Login body. The mobile is trimmed; the password is used exactly as sent."""

    mobile: str = Field(min_length=1, max_length=32)
    password: str = Field(min_length=1, max_length=64)

    @field_validator("mobile")
    @classmethod
    def strip_mobile(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("mobile must not be blank")
        return value


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int


class MenuNode(BaseModel):
    """One navigation node in GET /auth/menu."""

    model_config = ConfigDict(frozen=True)

    id: int
    parent_id: int
    name: str
    icon: str
    api_url: str
    menu_type: int
    path: str

    @classmethod
    def from_menu(cls, menu: Menu) -> "MenuNode":
        return cls(
            id=menu.id,
            parent_id=menu.parent_id,
            name=menu.menu_name,
            icon=menu.menu_icon or "",
            api_url=menu.api_url,
            menu_type=menu.menu_type,
            path=menu.menu_url,
        )


class UserMenuResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    menu_nodes: list[MenuNode]
    button_urls: list[str]
    avatar: str
    display_name: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class RoleRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    role_name: str
    status: int
    sort: int
    remark: Optional[str] = None

    @classmethod
    def from_role(cls, role: Role) -> "RoleRow":
        return cls(id=role.id, role_name=role.role_name, status=role.status, sort=role.sort, remark=role.remark)


class UserRolesResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    roles: list[RoleRow]
    role_ids: list[int]


class UserRolesUpdate(BaseModel):
    role_ids: list[int] = Field(default_factory=list, max_length=200)

    @field_validator("role_ids")
    @classmethod
    def dedupe_role_ids(cls, values: list[int]) -> list[int]:
        return _dedupe(values)


class IdsRequest(BaseModel):
    """Body for the bulk delete endpoints."""

    ids: list[int] = Field(min_length=1, max_length=200)

    @field_validator("ids")
    @classmethod
    def dedupe_ids(cls, values: list[int]) -> list[int]:
        return _dedupe(values)


class DeletedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    deleted: int


class PasswordUpdate(BaseModel):
    old_password: str = Field(min_length=1, max_length=64)
    new_password: str = Field(min_length=6, max_length=64)

    @field_validator("new_password")
    @classmethod
    def fits_bcrypt(cls, value: str) -> str:
        # 64 characters can be up to 256 UTF-8 bytes; bcrypt accepts 72.
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"new_password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8")
        return value


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class MenuRow(BaseModel):
    """One selectable node in the role grant editor."""

    model_config = ConfigDict(frozen=True)

    id: int
    parent_id: int
    title: str
    menu_type: int
    api_url: str
    status: int

    @classmethod
    def from_menu(cls, menu: Menu) -> "MenuRow":
        return cls(
            id=menu.id,
            parent_id=menu.parent_id,
            title=menu.menu_name,
            menu_type=menu.menu_type,
            api_url=menu.api_url,
            status=menu.status,
        )


class RoleMenusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    menus: list[MenuRow]
    menu_ids: list[int]


class RoleMenusUpdate(BaseModel):
    menu_ids: list[int] = Field(default_factory=list, max_length=1000)

    @field_validator("menu_ids")
    @classmethod
    def dedupe_menu_ids(cls, values: list[int]) -> list[int]:
        return _dedupe(values)
