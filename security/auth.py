from __future__ import annotations

from typing import Any, Final

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.errors import auth_invalid_token
from security.encrypting_jwt import decode_jwt_token
from security.principal import AuthPrincipal


token_auth_scheme = HTTPBearer(auto_error=True)
AUTH_ROLES: Final[tuple[str, ...]] = ('customer', 'vendor', 'admin',)
DEFAULT_ROLE: Final[str] = "customer"


def _claimed_role(claims: dict[str, Any]) -> str:
    app_metadata = claims.get("app_metadata")
    role = None
    if isinstance(app_metadata, dict):
        role = app_metadata.get("role")
    role = role or claims.get("role") or DEFAULT_ROLE
    return str(role).lower()


def _resolve_principal(credentials: HTTPAuthorizationCredentials) -> AuthPrincipal:
    try:
        claims = decode_jwt_token(credentials.credentials)
    except jwt.ExpiredSignatureError as err:
        raise auth_invalid_token(details={"reason": "expired"}) from err
    except jwt.InvalidTokenError as err:
        raise auth_invalid_token() from err

    role = _claimed_role(claims)
    if role not in AUTH_ROLES:
        raise auth_invalid_token(details={"role": role})

    iat = claims.get("iat")
    return AuthPrincipal(
        user_id=str(claims["sub"]),
        role=role,
        jwt_token=credentials.credentials,
        issued_at=int(iat) if isinstance(iat, (int, float)) else None,
    )


async def verify_any_token(
    credentials: HTTPAuthorizationCredentials = Depends(token_auth_scheme),
) -> AuthPrincipal:
    return _resolve_principal(credentials)
