"""
Supabase JWT authentication.

Every feed, preference and interaction endpoint depends on `require_user`,
which verifies the bearer token with the secret from the injected Settings
and returns the caller's identity.

    @router.post("/protected")
    def endpoint(user: AuthenticatedUser = Depends(require_user)):
        user.id  # verified 'sub' claim
"""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings
from .logging_setup import get_logger

logger = get_logger("civic_feed.auth")

security = HTTPBearer(
    scheme_name="Supabase JWT",
    description="Access token issued by Supabase Auth.",
    auto_error=False,  # we raise our own 401
)


@dataclass
class AuthenticatedUser:
    id: str
    email: Optional[str] = None
    role: str = "authenticated"
    session_id: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_jwt(token: str, settings: Settings) -> dict:
    """
    Decode and verify a Supabase HS256 token.
    Raises a 401 HTTPException if the token is expired, for another audience,
    or otherwise invalid.
    """
    if not settings.jwt_secret:
        # Fail closed if the secret was never configured
        logger.error("JWT_SECRET_MISSING")
        raise _unauthorized("Authentication is not configured")
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidAudienceError:
        raise _unauthorized("Invalid token audience")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(f"Invalid token: {e}")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> AuthenticatedUser:
    if not credentials or not credentials.credentials:
        raise _unauthorized("Authorization header required")

    payload = verify_jwt(credentials.credentials, settings)
    return AuthenticatedUser(
        id=str(payload["sub"]),
        email=payload.get("email"),
        role=payload.get("role", "authenticated"),
        session_id=payload.get("session_id"),
    )
