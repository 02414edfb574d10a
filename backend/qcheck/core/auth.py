"""Bearer token issuing and verification.

The core never looks identity up on its own; the HTTP layer resolves a token
to an ``Actor`` and passes it down explicitly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from qcheck.core.config import Settings
from qcheck.domain.models import Actor, Role


class InvalidTokenError(Exception):
    pass


def create_token(settings: Settings, *, user_id: str, role: Role, ttl_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.token_ttl_minutes
    payload = {
        "sub": user_id,
        "role": role.value,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str) -> Actor:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        raise InvalidTokenError("Invalid or expired token") from exc

    try:
        return Actor(id=str(payload["sub"]), role=Role(payload["role"]))
    except (KeyError, ValueError) as exc:
        raise InvalidTokenError("Token is missing identity claims") from exc
