"""
api/routes/v1/auth.py -- Login and current-user menu endpoints.

Routes:
  POST /api/v1/auth/login   -- mobile + password; returns a bearer token
  GET  /api/v1/auth/menu    -- navigation tree and button urls for the token holder

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] AccountService.login() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every login response, success or failure.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import ErrorResponse, LoginRequest, LoginResponse, MenuNode, UserMenuResponse
from auth.dependencies import get_current_claims
from auth.models import TokenClaims
from auth.service import AccountService
from core.config import get_settings
from core.errors import AccessControlError

# Auth policy:
# - POST /api/v1/auth/login: public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/menu:  requires a valid token (get_current_claims); every
#   logged-in operator may read their own menu, so no api_url grant is needed
router = APIRouter()


@limiter.limit(get_settings().login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse, responses={401: {"model": ErrorResponse}})
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with mobile and password; return a signed bearer token.

    Rejections carry a specific code: not_found (unknown mobile),
    bad_credentials ("password incorrect"), account_disabled, or
    no_permissions (no role or no granted menu).
    """
    accounts: AccountService = request.app.state.accounts
    try:
        token, _user = accounts.login(body.mobile, body.password)
    except AccessControlError as exc:
        resp = JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=accounts.tokens.expire_seconds,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.get("/auth/menu", response_model=UserMenuResponse)
def query_user_menu(request: Request, claims: TokenClaims = Depends(get_current_claims)) -> UserMenuResponse:
    """Return the token holder's navigation nodes and button urls.

    Resolved from the store on every call, so menu grants changed after login
    show up here even though the token's own permission set does not change.
    """
    accounts: AccountService = request.app.state.accounts
    user, tree = accounts.current_user_menu(claims)
    return UserMenuResponse(
        menu_nodes=[MenuNode.from_menu(m) for m in tree.menu_nodes],
        button_urls=tree.button_urls,
        avatar=get_settings().default_avatar_url,
        display_name=user.user_name,
    )
