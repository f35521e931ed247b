from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from compass_api.config import Settings, get_settings

ANONYMOUS_SUBJECT = "anonymous"

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_api_token(token: str, settings: Settings) -> dict:
    # PyJWT checks exp itself when the claim is present.
    try:
        payload = jwt.decode(
            token,
            settings.api_jwt_secret,
            algorithms=[settings.api_jwt_algorithm],
            audience=settings.api_jwt_audience,
            issuer=settings.api_jwt_issuer,
        )
    except jwt.ExpiredSignatureError as exc:
        raise _unauthorized("API token expired") from exc
    except jwt.PyJWTError as exc:
        raise _unauthorized(f"Invalid token: {exc}") from exc

    if not payload.get("sub"):
        raise _unauthorized("Missing subject in API token")
    return payload


def get_current_subject(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> str:
    if not settings.auth_enabled:
        return ANONYMOUS_SUBJECT
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing Bearer token")
    return str(decode_api_token(credentials.credentials, settings)["sub"])
