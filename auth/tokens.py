"""
auth/tokens.py -- JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), email, role, iat and exp. Validity is purely a function
       of signature and expiry -- nothing is stored server-side and there is no
       revocation list.

  Configuration: TokenService is constructed from an explicit TokenConfig
       built once at startup (see api/main.py lifespan). The service never
       reads settings or the environment at call time, so tests can build a
       service with any secret or lifetime without touching global state.

  Errors: every verification failure (bad signature, expired, missing or
       malformed claims, unknown role) raises Unauthorized with the same
       generic message. The specific reason is logged at debug level only.

Layer rule: no imports from api/ or avatars/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import Claims, Role
from core.errors import Unauthorized

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("avatarengine.auth")

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenConfig:
    """Signing secret and token lifetime, fixed for the life of the process."""

    secret_key: str
    expires_in: timedelta
    algorithm: str = _ALGORITHM

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(secret_key=settings.secret_key, expires_in=settings.token_lifetime)


class TokenService:
    """Issues and verifies signed, time-bounded bearer tokens.

    Usage:
        tokens = TokenService(TokenConfig.from_settings(get_settings()))
        token = tokens.issue(user.id, user.email, user.role)
        claims = tokens.verify(token)
    """

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    @property
    def expires_in(self) -> timedelta:
        return self._config.expires_in

    def issue(self, subject_id: int, email: str, role: Role, now: Optional[datetime] = None) -> str:
        """Encode a signed JWT for the given identity.

        now defaults to the current UTC time; passing it explicitly lets
        callers (and tests) pin the issuance instant.
        """
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(subject_id),
            "email": email,
            "role": Role(role).value,
            "iat": issued_at,
            "exp": issued_at + self._config.expires_in,
        }
        return jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)

    def verify(self, token: str) -> Claims:
        """Decode and verify a JWT, returning its claims.

        Raises Unauthorized if the signature is invalid, the token has expired,
        or the payload does not carry a well-formed identity.
        """
        try:
            payload = jwt.decode(token, self._config.secret_key, algorithms=[self._config.algorithm])
        except ExpiredSignatureError:
            logger.debug("Rejected expired token")
            raise Unauthorized() from None
        except JWTError as exc:
            logger.debug("Rejected token: %s", exc)
            raise Unauthorized() from None

        try:
            return Claims(
                subject_id=int(payload["sub"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Rejected token with malformed claims: %s", exc)
            raise Unauthorized() from None


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the JWT access token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": cookie sent on same-site navigations but not on cross-site
        POST -- CSRF mitigation for most cases.
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )
