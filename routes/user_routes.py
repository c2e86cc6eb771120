"""
Profile and session endpoints for the signed-in user.

GET    /user/profile               — current profile
PUT    /user/profile               — change fullname and/or email
GET    /user/sessions              — active sessions (devices)
DELETE /user/sessions/{session_id} — sign one device out
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import CurrentUser, get_container, get_user_service
from schemas.dto.requests.user import UpdateProfileRequest
from schemas.dto.responses.auth import UserResponse
from schemas.dto.responses.common import MessageResponse
from schemas.dto.responses.user import (
    ProfileResponse,
    ProfileUpdateResponse,
    SessionResponse,
    SessionsResponse,
)
from services.container import ServiceContainer
from services.user_service import UserService

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user: CurrentUser) -> ProfileResponse:
    return ProfileResponse(user=UserResponse.from_doc(user))


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    body: UpdateProfileRequest,
    user: CurrentUser,
    users: UserService = Depends(get_user_service),
) -> ProfileUpdateResponse:
    result = await users.update_profile(user.id, fullname=body.fullname, email=body.email)
    return ProfileUpdateResponse(
        user=UserResponse.from_doc(result.user),
        email_changed=result.email_changed,
        verification_sent=result.verification_sent,
    )


@router.get("/sessions", response_model=SessionsResponse)
async def list_sessions(
    user: CurrentUser,
    container: ServiceContainer = Depends(get_container),
) -> SessionsResponse:
    sessions = await container.refresh_tokens.list_sessions(user.id)
    return SessionsResponse(
        sessions=[SessionResponse.from_doc(s) for s in sessions],
        total=len(sessions),
    )


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
async def revoke_session(
    session_id: str,
    user: CurrentUser,
    container: ServiceContainer = Depends(get_container),
) -> MessageResponse:
    await container.refresh_tokens.revoke_session(user.id, session_id)
    return MessageResponse(message="Session revoked")
