"""
Authentication endpoints.

POST /auth/register               — create an account, mail a verification code
POST /auth/verify-email           — confirm the email with its code
POST /auth/resend-otp             — mail a fresh verification code
POST /auth/login                  — access token in the body, refresh token in a cookie
POST /auth/refresh                — new access token from the refresh cookie
POST /auth/logout                 — revoke the refresh cookie's session
POST /auth/logout-all             — revoke every session of the caller
POST /auth/forgot-password        — mail a reset link (same answer for any email)
GET  /auth/reset-password/{token} — check a reset token before showing the form
POST /auth/reset-password         — set a new password with a reset token
POST /auth/change-password        — change the password of the signed-in user
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from config import AppSettings
from dependencies import CurrentUser, get_auth_service, get_settings
from errors import AppError
from routes.cookies import clear_refresh_cookie, read_refresh_cookie, set_refresh_cookie
from schemas.dto.requests.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResendOtpRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from schemas.dto.responses.auth import (
    LoginResponse,
    LogoutAllResponse,
    RefreshResponse,
    RegisterResponse,
    ResendOtpResponse,
    ResetTokenStatusResponse,
    UserResponse,
    VerifyEmailResponse,
)
from schemas.dto.responses.common import MessageResponse
from services.auth_service import AuthService
from shared.ip_utils import device_info_from_request

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


@router.post(
    "/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED
)
async def register(
    body: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    result = await auth.register(body.username, body.fullname, body.email, body.password)
    message = (
        "Registration successful. Check your email for the verification code."
        if result.verification_sent
        else "Registration successful, but the verification email could not be "
        "sent. Please request a new code."
    )
    return RegisterResponse(
        message=message,
        user=UserResponse.from_doc(result.user),
        verification_sent=result.verification_sent,
    )


@router.post("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    body: VerifyEmailRequest,
    auth: AuthService = Depends(get_auth_service),
) -> VerifyEmailResponse:
    user = await auth.verify_email(body.email, body.code)
    return VerifyEmailResponse(
        message="Email verified successfully", user=UserResponse.from_doc(user)
    )


@router.post("/resend-otp", response_model=ResendOtpResponse)
async def resend_otp(
    body: ResendOtpRequest,
    auth: AuthService = Depends(get_auth_service),
) -> ResendOtpResponse:
    delivery = await auth.resend_otp(body.email)
    message = (
        "A new verification code has been sent."
        if delivery.email_sent
        else "A new verification code was created but the email could not be sent."
    )
    return ResendOtpResponse(
        message=message, email_sent=delivery.email_sent, expires_at=delivery.expires_at
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> LoginResponse:
    result = await auth.login(
        body.username, body.password, device_info_from_request(request)
    )
    set_refresh_cookie(
        response,
        result.refresh_token,
        settings.session,
        max_age=settings.session.login_session_ttl_seconds,
    )
    return LoginResponse(
        access_token=result.access_token,
        expires_in=result.expires_in,
        user=UserResponse.from_doc(result.user),
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
):
    token = read_refresh_cookie(request, settings.session)
    try:
        result = await auth.refresh(token)
    except AppError as exc:
        # Any refresh failure invalidates the client-held cookie
        error_response = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        clear_refresh_cookie(error_response, settings.session)
        return error_response

    return RefreshResponse(
        access_token=result.access_token,
        expires_in=settings.jwt.access_token_ttl_seconds,
        user=UserResponse.from_doc(result.user),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    await auth.logout(read_refresh_cookie(request, settings.session))
    clear_refresh_cookie(response, settings.session)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=LogoutAllResponse)
async def logout_all(
    user: CurrentUser,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> LogoutAllResponse:
    revoked = await auth.logout_all(user.id)
    clear_refresh_cookie(response, settings.session)
    return LogoutAllResponse(revoked_sessions=revoked)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.forgot_password(body.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.get("/reset-password/{token}", response_model=ResetTokenStatusResponse)
async def verify_reset_token(
    token: str,
    auth: AuthService = Depends(get_auth_service),
) -> ResetTokenStatusResponse:
    record = await auth.verify_reset_token(token)
    return ResetTokenStatusResponse(expires_at=record.expires_at)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    await auth.reset_password(body.token, body.new_password)
    clear_refresh_cookie(response, settings.session)
    return MessageResponse(
        message="Password reset successfully. Please log in with your new password."
    )


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: CurrentUser,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.change_password(user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")
