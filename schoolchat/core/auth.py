from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import Enum

import jwt
from schoolchat.core.config import get_settings


class TokenError(Exception):
    """Raised when a token cannot be decoded or validated."""


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"

    @classmethod
    def parse(cls, value: str | None) -> Role | None:
        """Return the matching role, or ``None`` for roles this core does not know."""
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def admin_roles(cls) -> tuple[Role, ...]:
        return (cls.SUPER_ADMIN, cls.ADMIN)


def is_admin_role(role: str | None) -> bool:
    return Role.parse(role) in Role.admin_roles()


def create_access_token(
    subject: str,
    *,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Generate a signed JWT access token."""
    settings = get_settings()

    if not role:
        raise TokenError("Token role is required")

    now = datetime.now(UTC)
    ttl = expires_delta or timedelta(seconds=settings.access_token_ttl_seconds)
    payload = {
        "sub": subject,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        "iss": settings.app_name,
    }

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT access token."""
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token expired") from exc
    except jwt.PyJWTError as exc:  # pragma: no cover - third-party raises numerous subclasses
        raise TokenError("Invalid token") from exc

    if not payload.get("sub"):
        raise TokenError("Token missing subject")
    return payload


def extract_bearer_token(header_value: str | None) -> str | None:
    """Return the token part of an ``Authorization: Bearer <token>`` header."""
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
