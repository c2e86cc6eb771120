"""
Admin endpoints.

PATCH /admin/users/{user_id}/status — activate or deactivate an account
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import AdminUser, get_user_service
from schemas.dto.requests.user import UpdateUserStatusRequest
from schemas.dto.responses.auth import UserResponse
from schemas.dto.responses.user import UserStatusResponse
from services.user_service import UserService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.patch("/users/{user_id}/status", response_model=UserStatusResponse)
async def update_user_status(
    user_id: str,
    body: UpdateUserStatusRequest,
    admin: AdminUser,
    users: UserService = Depends(get_user_service),
) -> UserStatusResponse:
    result = await users.set_active(user_id, body.is_active, actor=admin)
    return UserStatusResponse(
        user=UserResponse.from_doc(result.user),
        revoked_sessions=result.revoked_sessions,
    )
