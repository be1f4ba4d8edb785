"""
auth/tokens.py -- Bearer token issuance/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. A token carries sub (username), user_id, the
       flattened permission set, iat, exp and a random jti. It is never stored
       server-side; verification needs only the shared secret. There is no
       revocation list -- the permission set inside a token is fixed until
       exp, so TOKEN_EXPIRE_SECONDS bounds how stale it can get.

       verify() raises AuthenticationError with a reason the caller can act
       on: "malformed", "invalid_signature" or "expired". The route layer maps
       all three to 401.

  Passwords: bcrypt used directly. bcrypt.checkpw compares in constant time.
       The _DUMMY_HASH constant enables timing equalization at login so
       response time does not reveal whether a mobile number exists [C1].

  SECRET_KEY: sourced from core.config.get_settings() via
       TokenService.from_settings(). The Settings validator rejects short or
       missing keys at startup [M6].

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import TokenClaims
from core.config import Settings, get_settings
from core.errors import AuthenticationError, ValidationError

logger = logging.getLogger("consoleguard.auth")

_ALGORITHM = "HS256"

MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt refuses input over MAX_PASSWORD_BYTES (72 UTF-8 bytes, not
    characters). That is raised as ValidationError so the API answers 400 and
    the CLI prints a message; api.models.PasswordUpdate rejects it earlier.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8",
            code="password_too_long",
        )
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A stored value that is not a bcrypt hash (e.g. a legacy plaintext row)
    never matches, and neither does input bcrypt refuses as too long.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones [C1].
_DUMMY_HASH: str = hash_password("consoleguard_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run one bcrypt comparison against the dummy hash and discard the result."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenService:
    """Issue and verify signed, time-bound identity tokens.

    Holds only immutable configuration, so one instance can be shared by every
    request. Build it explicitly (tests) or from Settings (app lifespan).
    """

    def __init__(self, secret_key: str, expire_seconds: int, algorithm: str = _ALGORITHM) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TokenService:
        settings = settings or get_settings()
        return cls(settings.secret_key, settings.token_expire_seconds)

    def issue(
        self,
        user_id: int,
        username: str,
        permissions: Iterable[str],
        expire_seconds: int | None = None,
    ) -> str:
        """Encode a signed JWT binding identity to a permission set.

        Args:
            user_id:        Numeric user id.
            username:       Display name, stored as the sub claim.
            permissions:    Flattened api_url set; stored sorted for stable output.
            expire_seconds: Lifetime override. None uses the configured window.
                            Zero or negative values produce an already-expired
                            token (used by tests).
        """
        duration = self.expire_seconds if expire_seconds is None else expire_seconds
        now = datetime.now(timezone.utc)
        payload = {
            "sub": username,
            "user_id": user_id,
            "permissions": sorted(set(permissions)),
            "iat": now,
            "exp": now + timedelta(seconds=duration),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT. Returns the claims or raises AuthenticationError.

        The unverified parse runs first so a garbled token is reported as
        "malformed" rather than as a signature failure. Signature is checked
        before expiry, so a forged expired token is "invalid_signature".
        """
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise AuthenticationError("Token is malformed.", reason="malformed") from exc

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise AuthenticationError("Token has expired.", reason="expired") from exc
        except JWTError as exc:
            logger.warning("Rejected token: %s", exc)
            raise AuthenticationError("Token signature is invalid.", reason="invalid_signature") from exc

        user_id = payload.get("user_id")
        username = payload.get("sub")
        permissions = payload.get("permissions")
        if not isinstance(user_id, int) or not isinstance(username, str) or not isinstance(permissions, list):
            raise AuthenticationError("Token is missing required claims.", reason="malformed")
        return TokenClaims(user_id=user_id, username=username, permissions=frozenset(permissions))
