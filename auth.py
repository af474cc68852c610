"""Session-token helpers.

``POST /auth`` signs a short-lived JWT carrying the caller's email and role and
stores it in the ``token`` http-only cookie. Every protected route resolves the
caller through the ``get_current_identity`` dependency, which:
1. Reads the token from the cookie, or from an ``Authorization: Bearer`` header.
2. Verifies signature and expiration with the configured secret.
3. Returns an ``Identity`` (email, role) that the workflow trusts as-is.
"""
from __future__ import annotations

import time
from typing import Annotated, Optional

import structlog
from fastapi import Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from settings import Settings, get_settings

logger = structlog.get_logger(__name__)

COOKIE_NAME = "token"


class TokenPayload(BaseModel):
    sub: str
    role: str
    exp: int


class Identity(BaseModel):
    email: str
    role: str


def create_access_token(email: str, role: str, settings: Settings) -> str:
    expires = int(time.time()) + settings.token_expire_hours * 3600
    claims = {"sub": email, "role": role, "exp": expires}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Optional[Settings] = None) -> TokenPayload:
    """Verify a session JWT and return its payload.

    Raises HTTPException(401) on failure.
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenPayload.model_validate(payload)
    except (JWTError, ValidationError) as exc:
        logger.warning("JWT verification failed", exc=str(exc))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="none" if settings.cookie_secure else "strict",
        max_age=settings.token_expire_hours * 3600,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        COOKIE_NAME,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="none" if settings.cookie_secure else "strict",
    )


# Helper to extract the raw token (works with FastAPI DI)
def _get_raw_token(request: Request) -> Optional[str]:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    authorization = request.headers.get("Authorization")
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1]
    return None


# --- FastAPI dependency ---
async def get_current_identity(
    token: Annotated[Optional[str], Depends(_get_raw_token)],
    settings: Settings = Depends(get_settings),
) -> Identity:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing session token")
    payload = verify_token(token, settings)
    return Identity(email=payload.sub, role=payload.role)


def require_self(identity: Identity, email: str) -> None:
    """Private user records are only visible to their owner."""
    if identity.email != email:
        logger.warning("Forbidden access to another user's record", caller=identity.email, target=email)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden Access!")
