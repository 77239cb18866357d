"""Authentication dependencies for protected routes."""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings

security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns None when invalid or expired."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Get the authenticated user's id from the bearer token's ``sub`` claim.

    Usage:
        @router.get("/protected")
        async def protected_route(user_id: str = Depends(get_current_user_id)):
            return {"user_id": user_id}
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Token has no subject")
    return str(user_id)


def require_service_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Require a token issued to a service account (``"service": true`` claim)."""
    user_id = get_current_user_id(credentials)
    if not decode_access_token(credentials.credentials).get("service"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service account access required",
        )
    return user_id
