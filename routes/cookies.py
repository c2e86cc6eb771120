"""
Refresh-token cookie helpers.

The refresh token is only ever sent as an HttpOnly, SameSite=Strict cookie
scoped to the /auth path, so page scripts cannot read it and only the auth
endpoints receive it.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request, Response

from config import SessionSettings


def read_refresh_cookie(request: Request, settings: SessionSettings) -> Optional[str]:
    return request.cookies.get(settings.refresh_cookie_name) or None


def set_refresh_cookie(
    response: Response, token: str, settings: SessionSettings, max_age: int
) -> None:
    response.set_cookie(
        settings.refresh_cookie_name,
        value=token,
        max_age=max_age,
        path=settings.refresh_cookie_path,
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )


def clear_refresh_cookie(response: Response, settings: SessionSettings) -> None:
    response.delete_cookie(
        settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )
