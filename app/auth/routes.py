# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Sign-up and login happen client-side with Supabase Auth.
# These routes cover what the storefront needs afterwards: the signed-in
# profile and the welcome email.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.auth.dependencies import get_current_user, is_admin
from app.auth.models import AuthUser, ProfileResponse
from core.models.email import WelcomeRequest
from core.services.notification_service import NotificationService
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

router = APIRouter()
profile_router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user),
) -> ProfileResponse:
    """
    Profile of the signed-in user.

    Falls back to the token's id/email when the profiles row doesn't exist
    yet (the sign-up trigger may not have run).
    """
    profile = SupabaseClient.fetch_profile(str(user.id))
    if profile:
        return ProfileResponse(**profile)

    logger.info(f"No profile row yet for user {user.id}")
    return ProfileResponse(id=user.id, email=user.email)


@router.post("/welcome")
async def send_welcome_email(request: WelcomeRequest):
    """Send the welcome email after sign-up."""
    return NotificationService.send_welcome(request.name, request.email)


@profile_router.get("/profile")
async def get_profile(
    user_id: str | None = Query(default=None, alias="userId"),
    user: AuthUser = Depends(get_current_user),
):
    """
    Profile row by user id.

    Users can read their own profile; admins can read any.
    """
    if not user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId required")

    if user_id != str(user.id) and not is_admin(str(user.id)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    profile = SupabaseClient.fetch_profile(user_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

    return {"profile": profile}
