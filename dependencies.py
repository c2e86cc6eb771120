"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Services come from the ServiceContainer built in
the app lifespan and stored on app.state.

Authentication is two steps: the bearer token is verified statelessly, then
the account is re-read so a deactivated or unverified user is turned away
even while their token is still within its lifetime.
"""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import AppSettings
from errors import AuthenticationError, ErrorCode, ForbiddenError
from schemas.models.user import UserDoc, UserRole, has_role
from services.access_token_service import AccessClaims
from services.auth_service import AuthService
from services.container import ServiceContainer
from services.user_service import UserService

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_auth_service(
    container: ServiceContainer = Depends(get_container),
) -> AuthService:
    return container.auth


def get_user_service(
    container: ServiceContainer = Depends(get_container),
) -> UserService:
    return container.users


async def get_access_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    container: ServiceContainer = Depends(get_container),
) -> AccessClaims:
    """Verify the ``Authorization: Bearer`` access token."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(
            "Authentication required", code=ErrorCode.AUTHENTICATION_REQUIRED
        )
    return container.access_tokens.verify(credentials.credentials)


async def get_current_user(
    claims: AccessClaims = Depends(get_access_claims),
    users: UserService = Depends(get_user_service),
) -> UserDoc:
    return await users.resolve_principal(claims)


def require_roles(*roles: UserRole):
    """Dependency factory: the current user must hold one of *roles*."""

    async def _require(user: UserDoc = Depends(get_current_user)) -> UserDoc:
        if not has_role(user, *roles):
            raise ForbiddenError(
                "Insufficient permissions", code=ErrorCode.INSUFFICIENT_ROLE
            )
        return user

    return _require


CurrentUser = Annotated[UserDoc, Depends(get_current_user)]
AdminUser = Annotated[
    UserDoc, Depends(require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN))
]
