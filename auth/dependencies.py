"""
auth/dependencies.py -- Request-boundary auth gate and FastAPI Depends() helpers.

The gate is:
  1. extract_bearer() -- the Authorization header must be exactly
     "Bearer <token>". Missing header, another scheme keyword ("Token abc")
     or extra space-separated values are rejected here, before any
     signature work.
  2. TokenService.verify() -- signature and expiry.
  3. The verified TokenClaims are handed to the route.

get_current_claims() stops at 3. require_permission(key) builds a dependency
that additionally checks one explicit permission key (see auth/permissions.py,
e.g. "PUT /api/v1/users/{user_id}/roles") against the permission set embedded
in the token. Which roles hold a key lives in sys_menu, not in code.

No store access happens here: a token is self-contained, so a request for a
user deleted after login still passes the gate until the token expires.
Routes that need the user row load it themselves.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.models import TokenClaims
from auth.tokens import TokenService
from core.errors import AccessControlError, AuthenticationError, AuthorizationError

logger = logging.getLogger("consoleguard.auth.gate")

_SCHEME = "Bearer"


def extract_bearer(authorization: str | None) -> str:
    """Return the token from an Authorization header value or raise AuthenticationError."""
    if not authorization:
        raise AuthenticationError("Authentication required.", reason="missing")
    parts = authorization.split()
    if len(parts) != 2 or parts[0] != _SCHEME:
        raise AuthenticationError("Authorization header must be 'Bearer <token>'.", reason="malformed_header")
    return parts[1]


def authenticate(authorization: str | None, tokens: TokenService) -> TokenClaims:
    """Run the full gate on a raw header value."""
    return tokens.verify(extract_bearer(authorization))


def authorize(claims: TokenClaims, api_url: str) -> None:
    """Raise AuthorizationError unless api_url is in the token's permission set."""
    if api_url not in claims.permissions:
        logger.warning("User %s denied %s", claims.user_id, api_url)
        raise AuthorizationError("You do not have permission to call this API.", detail=api_url)


def _http_error(exc: AccessControlError) -> HTTPException:
    headers = {"WWW-Authenticate": _SCHEME} if isinstance(exc, AuthenticationError) else None
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message, "detail": exc.detail},
        headers=headers,
    )


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    tokens: TokenService = request.app.state.tokens
    try:
        return authenticate(request.headers.get("Authorization"), tokens)
    except AuthenticationError as exc:
        raise _http_error(exc) from exc


def require_permission(api_url: str) -> Callable[[Request], TokenClaims]:
    """Return a dependency requiring a valid token that holds api_url.

    The dependency raises HTTP 401 if unauthenticated, HTTP 403 if api_url is
    not granted. Usage:
        @router.put("/users/{user_id}/roles")
        def route(claims: TokenClaims = Depends(require_permission(USER_ROLES_UPDATE))): ...
    """

    def check_permission(request: Request) -> TokenClaims:
        claims = get_current_claims(request)
        try:
            authorize(claims, api_url)
        except AuthorizationError as exc:
            raise _http_error(exc) from exc
        return claims

    return check_permission
