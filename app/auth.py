"""Bearer-token authentication for admin routes.

Failures are returned as :class:`AuthError` values rather than raised, so
every caller has to decide what each outcome means. Only the FastAPI
dependency at the bottom turns them into HTTP 401 responses.

Tokens cannot be revoked individually before they expire; deactivating the
admin account is the only way to cut off an issued token.
"""

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Protocol

import jwt
from fastapi import HTTPException, Request, status

from app.config import Settings
from app.models import AdminIdentity, AdminRecord

logger = logging.getLogger(__name__)

_REQUIRED_CLAIMS = ["sub", "iat", "exp"]


class AuthErrorKind(enum.Enum):
    NO_TOKEN = "Not authorized - no token provided"
    INVALID_TOKEN = "Not authorized - invalid token"
    TOKEN_EXPIRED = "Not authorized - token expired"
    ADMIN_NOT_FOUND = "Not authorized - admin not found"
    ACCOUNT_DEACTIVATED = "Not authorized - account deactivated"


@dataclass(frozen=True)
class AuthError:
    kind: AuthErrorKind

    @property
    def message(self) -> str:
        return self.kind.value


class AdminLookup(Protocol):
    def get_admin(self, admin_id: int) -> AdminRecord | None: ...


def bearer_token(headers: Mapping[str, str]) -> str | None:
    raw = (headers.get("authorization") or headers.get("Authorization") or "").strip()
    parts = raw.split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


class TokenAuthenticator:
    def __init__(
        self,
        settings: Settings,
        lookup: AdminLookup,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._ttl_s = settings.token_ttl_s
        self._lookup = lookup
        self._clock = clock

    def issue_token(self, subject_id: int) -> str:
        issued_at = int(self._clock())
        payload = {
            "sub": str(subject_id),
            "iat": issued_at,
            "exp": issued_at + self._ttl_s,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> int | AuthError:
        """Check signature and expiry; return the subject id."""
        try:
            # Expiry is checked against the injected clock below.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": _REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidTokenError:
            return AuthError(AuthErrorKind.INVALID_TOKEN)
        except Exception:
            logger.warning("unexpected token verification failure", exc_info=True)
            return AuthError(AuthErrorKind.INVALID_TOKEN)

        try:
            expires_at = int(payload["exp"])
            subject = int(str(payload["sub"]))
        except (TypeError, ValueError):
            return AuthError(AuthErrorKind.INVALID_TOKEN)

        if self._clock() >= expires_at:
            return AuthError(AuthErrorKind.TOKEN_EXPIRED)
        return subject

    def authenticate(self, headers: Mapping[str, str]) -> AdminIdentity | AuthError:
        token = bearer_token(headers)
        if token is None:
            return AuthError(AuthErrorKind.NO_TOKEN)

        subject = self.verify(token)
        if isinstance(subject, AuthError):
            return subject

        record = self._lookup.get_admin(subject)
        if record is None:
            return AuthError(AuthErrorKind.ADMIN_NOT_FOUND)
        if not record.is_active:
            return AuthError(AuthErrorKind.ACCOUNT_DEACTIVATED)
        return record.identity()


def require_admin(request: Request) -> AdminIdentity:
    """FastAPI dependency guarding every write route."""
    authenticator: TokenAuthenticator = request.app.state.authenticator
    result = authenticator.authenticate(request.headers)
    if isinstance(result, AuthError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.admin = result
    return result
