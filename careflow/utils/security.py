"""Password hashing and JWT access tokens for care-team accounts."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from careflow.config.settings import settings
from careflow.models.user import User

_HASH_SCHEME = "pbkdf2_sha256"
_SALT_BYTES = 16
_ITERATIONS = 120_000


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<digest>`` for the password."""

    salt = os.urandom(_SALT_BYTES)
    digest = _derive(password, salt, _ITERATIONS)
    return "$".join(
        (
            _HASH_SCHEME,
            str(_ITERATIONS),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(digest).decode("ascii"),
        )
    )


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a stored hash; malformed hashes never match."""

    try:
        scheme, iterations, salt, digest = hashed.split("$")
        if scheme != _HASH_SCHEME:
            return False
        expected = base64.b64decode(digest)
        candidate = _derive(password, base64.b64decode(salt), int(iterations))
    except (ValueError, TypeError):
        return False
    return hmac.compare_digest(candidate, expected)


class AuthenticationError(Exception):
    """Raised when a JWT cannot be decoded or is otherwise invalid."""


class TokenPayload(BaseModel):
    """Claims carried by an access token. ``sub`` is the user's numeric id."""

    sub: str
    exp: datetime
    iat: Optional[datetime] = None
    role: Optional[str] = None
    name: Optional[str] = None

    @property
    def user_id(self) -> int:
        return int(self.sub)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Sign an access token for ``user``, valid for the configured lifetime by default."""

    now = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.security.access_token_expires_minutes)
    claims: dict[str, Any] = {
        "sub": str(user.id),
        "iat": now,
        "exp": now + lifetime,
        "role": user.role.value,
        "name": user.full_name,
    }
    return jwt.encode(
        claims,
        settings.security.jwt_secret_key.get_secret_value(),
        algorithm=settings.security.jwt_algorithm,
    )


def decode_access_token(token: str) -> TokenPayload:
    """Verify the signature and expiry of an access token and return its claims."""

    try:
        claims = jwt.decode(
            token,
            settings.security.jwt_secret_key.get_secret_value(),
            algorithms=[settings.security.jwt_algorithm],
        )
        return TokenPayload.model_validate(claims)
    except (JWTError, ValidationError) as exc:
        raise AuthenticationError("Invalid authentication token") from exc


__all__ = [
    "AuthenticationError",
    "TokenPayload",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
]
