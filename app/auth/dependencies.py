# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Verifies Supabase access tokens issued to storefront customers and admins.
#
# Supports both:
# - ES256 (Supabase JWT signing keys) via the project's JWKS
# - HS256 (legacy SUPABASE_JWT_SECRET)
#
# Usage:
#   from app.auth import get_current_user, require_admin, AuthUser
#
#   @router.get("/admin/orders")
#   async def list_orders(admin: AuthUser = Depends(require_admin)):
#       ...
# =============================================================================

import logging
import time
from typing import Optional
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.auth.models import AuthUser
from app.config import settings
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

_jwks_cache: dict = {}
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 3600  # 1 hour


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _fetch_jwks() -> dict:
    """Fetch the project's JWKS, cached for an hour."""
    global _jwks_cache, _jwks_cache_time

    now = time.time()
    if _jwks_cache and (now - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    jwks_url = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/.well-known/jwks.json"
    try:
        response = httpx.get(jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = now
        logger.debug(f"Fetched JWKS from {jwks_url}")
        return _jwks_cache
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch JWKS: {e}")
        # Stale keys are better than none
        return _jwks_cache or {"keys": []}


def _legacy_secret() -> tuple[str, str]:
    if not settings.SUPABASE_JWT_SECRET:
        logger.warning("HS256 token rejected: SUPABASE_JWT_SECRET is not configured")
        raise _unauthorized("Invalid token: signing key not configured")
    return settings.SUPABASE_JWT_SECRET, "HS256"


def _get_signing_key(token: str) -> tuple[str | dict, str]:
    """
    Pick the verification key for a token.

    Returns:
        (key, algorithm)

    Raises:
        HTTPException: 401 if HS256 is needed but no secret is configured
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return _legacy_secret()

    alg = header.get("alg", "HS256")
    kid = header.get("kid")

    if alg == "HS256":
        return _legacy_secret()

    if kid:
        for key in _fetch_jwks().get("keys", []):
            if key.get("kid") == kid:
                return key, alg

    logger.warning(f"No JWKS key for alg={alg}, kid={kid}, falling back to HS256")
    return _legacy_secret()


def decode_token(token: str) -> AuthUser:
    """
    Verify a Supabase access token and return its user.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no user id
    """
    try:
        signing_key, algorithm = _get_signing_key(token)
        payload = jwt.decode(token, signing_key, algorithms=[algorithm], audience="authenticated")
    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise _unauthorized("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized(f"Invalid token: {e}")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token: missing user ID")

    try:
        user_uuid = UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid UUID in token: {user_id}")
        raise _unauthorized("Invalid token: malformed user ID")

    return AuthUser(id=user_uuid, email=payload.get("email"))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """
    Authenticated user from the Authorization: Bearer header.

    Raises:
        HTTPException: 401 if the header is missing or the token is invalid
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    user = decode_token(credentials.credentials)
    logger.debug(f"Authenticated user: {user.id}")
    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthUser]:
    """
    Like get_current_user, but anonymous (or invalid) tokens yield None.

    Used by guest-checkout routes that attach a user when one is signed in.
    """
    if credentials is None:
        return None

    try:
        return decode_token(credentials.credentials)
    except HTTPException:
        return None


def is_admin(user_id: str) -> bool:
    """True if the user's profile row has is_admin set."""
    try:
        profile = SupabaseClient.fetch_one("profiles", "id", user_id, columns="id, is_admin")
    except SupabaseClientError as e:
        logger.error(f"Admin check failed for {user_id}: {e.message}")
        return False
    return bool(profile and profile.get("is_admin"))


async def require_admin(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """
    Authenticated back-office user.

    Raises:
        HTTPException: 401 if unauthenticated, 403 if the profile isn't an admin
    """
    if not is_admin(str(user.id)):
        logger.warning(f"Non-admin user {user.id} tried to reach an admin route")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
