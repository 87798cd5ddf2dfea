"""
Bearer-token authentication against Supabase.

The frontend signs in with Supabase and sends the access token in the
Authorization header. This module verifies the token and turns its claims
into the acting principal that every requisition operation receives
explicitly.
"""
import logging
from typing import Optional

import requests
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.core.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer()


class CurrentUser:
    """Principal extracted from a verified access token."""

    def __init__(self, user_id: str, email: Optional[str] = None, role: Optional[str] = None):
        self.id = user_id
        self.email = email
        self.role = role or "user"

    def __repr__(self) -> str:
        return f"CurrentUser(id={self.id!r}, role={self.role!r})"


# JWKS is fetched once per process
_jwks_cache = None


def get_supabase_jwks() -> dict:
    """
    Fetch (and cache) Supabase's JSON Web Key Set.

    Supabase signs access tokens asymmetrically (ES256 for newer projects,
    RS256 for older ones), so verification needs the public keys published
    at the project's JWKS endpoint.
    """
    global _jwks_cache

    if _jwks_cache is not None:
        return _jwks_cache

    jwks_url = f"{settings.SUPABASE_URL}/auth/v1/.well-known/jwks.json"
    try:
        response = requests.get(jwks_url, timeout=10)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.exception("Failed to fetch JWKS from %s", jwks_url)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to fetch JWKS from Supabase: {str(e)}",
        )
    _jwks_cache = response.json()
    return _jwks_cache


def verify_token(token: str) -> dict:
    """
    Verify a Supabase access token and return its claims.

    Raises:
        HTTPException: 401 if the token is expired or invalid
    """
    jwks = get_supabase_jwks()
    try:
        return jwt.decode(
            token,
            jwks,
            algorithms=["ES256", "RS256"],
            audience="authenticated",
            options={"verify_aud": True},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def user_from_claims(payload: dict) -> CurrentUser:
    """
    Build the principal from token claims.

    Supabase puts the user id in ``sub``. The application role lives in
    ``app_metadata.role``; the top-level ``role`` claim is Supabase's own
    database role ("authenticated") and is only used as a fallback.
    """
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
            headers={"WWW-Authenticate": "Bearer"},
        )

    app_metadata = payload.get("app_metadata") or {}
    role = app_metadata.get("role")
    if role is None and payload.get("role") not in (None, "authenticated"):
        role = payload.get("role")

    return CurrentUser(user_id=user_id, email=payload.get("email"), role=role)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency returning the authenticated caller.

    Usage in route:
        @router.get("/mine")
        def mine(current_user: CurrentUser = Depends(get_current_user)):
            ...
    """
    return user_from_claims(verify_token(credentials.credentials))


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("")
        def list_all(current_user: CurrentUser = Depends(require_role("admin"))):
            ...
    """
    def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role != required_role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {required_role}",
            )
        return current_user
    return role_checker
