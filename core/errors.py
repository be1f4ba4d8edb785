"""
core/errors.py -- Exception taxonomy for the access-control engine.

Every failure the engine can report is an AccessControlError subclass carrying
a stable machine-readable code and the HTTP status the API layer should use.
auth/ raises these; api/main.py owns the single exception handler that turns
them into the {"error": {...}} envelope. Nothing below api/ knows about HTTP
beyond the status number attached to each class.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations


class AccessControlError(Exception):
    """Base class for all engine errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, code: str | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.detail = detail

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class AuthenticationError(AccessControlError):
    """No usable identity: missing/malformed header, bad token, or bad credentials.

    reason is one of:
      missing            -- no Authorization header
      malformed_header   -- header is not exactly "Bearer <token>"
      malformed          -- token is not a decodable JWT or lacks required claims
      invalid_signature  -- signature does not verify
      expired            -- exp claim has elapsed
      bad_credentials    -- login password mismatch
      disabled           -- login for a disabled account
    """

    status_code = 401
    code = "unauthorized"

    _CODES = {
        "expired": "token_expired",
        "invalid_signature": "token_invalid",
        "malformed": "token_invalid",
        "bad_credentials": "bad_credentials",
        "disabled": "account_disabled",
    }

    def __init__(self, message: str, *, reason: str, detail: str | None = None) -> None:
        super().__init__(message, code=self._CODES.get(reason, "unauthorized"), detail=detail)
        self.reason = reason


class AuthorizationError(AccessControlError):
    """Authenticated, but the permission set does not cover the requested path."""

    status_code = 403
    code = "forbidden"


class NotFoundError(AccessControlError):
    status_code = 404
    code = "not_found"


class ValidationError(AccessControlError):
    """Request is well-formed but violates an engine rule.

    Raised for an empty permission set at login and for attempts to mutate
    the reserved superadmin user or role.
    """

    status_code = 400
    code = "validation_failed"


class StoreError(AccessControlError):
    """The permission store could not answer (connectivity, schema, driver).

    message is safe to show to clients; the driver error goes to the log only.
    """

    status_code = 503
    code = "store_unavailable"
