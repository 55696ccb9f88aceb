"""
api/routes/v1/users.py -- Profile endpoints for the authenticated user.

Routes:
  GET /api/v1/users/profile    -- current user's profile
  PUT /api/v1/users/profile    -- partial update of profile attributes
  PUT /api/v1/users/password   -- change password (current password required)

Every route depends on get_current_user, so a request is rejected with 401
both for a bad token and for a token whose account no longer exists.
Email and password cannot be changed through PUT /profile
(ProfileUpdate forbids extra fields).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, PasswordChange, ProfileUpdate, UserEnvelope, UserPublic
from auth.dependencies import get_current_user
from auth.models import User
from auth.service import change_password, update_profile
from auth.store import UserStore

router = APIRouter()


@router.get("/users/profile", response_model=UserEnvelope)
def get_profile(current_user: User = Depends(get_current_user)) -> UserEnvelope:
    return UserEnvelope(user=UserPublic.from_user(current_user))


@router.put("/users/profile", response_model=UserEnvelope)
def put_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> UserEnvelope:
    """Update only the fields present in the body; null clears an optional field."""
    user_store: UserStore = request.app.state.user_store
    updated = update_profile(user_store, current_user.id, body.changes())
    return UserEnvelope(user=UserPublic.from_user(updated))


@router.put("/users/password", response_model=MessageResponse)
def put_password(
    request: Request,
    body: PasswordChange,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Change the password. A wrong current password is 401 invalid_credentials."""
    user_store: UserStore = request.app.state.user_store
    change_password(user_store, current_user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password updated.")
