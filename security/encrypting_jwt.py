from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from core.settings import get_settings

ALGORITHM = "HS256"

# Token lifetime (in minutes)
ACCESS_TOKEN_EXPIRE_MINUTES = 60


def _secret_key() -> str:
    return get_settings().secret_key or "dev-only-insecure-secret"


def create_jwt_token(user_id: str, role: str = "customer", *, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload=payload, key=_secret_key(), algorithm=ALGORITHM, headers={"typ": "JWT"})


def decode_jwt_token(token: str) -> dict[str, Any]:
    """Decode and verify a bearer token. Raises ``jwt.InvalidTokenError`` on any failure."""
    return jwt.decode(token, key=_secret_key(), algorithms=[ALGORITHM], options={"require": ["sub", "exp"]})
