"""
Client IP resolution and device classification for FastAPI requests.

Both feed the ``device_info`` recorded on every refresh token, so a user can
tell their sessions apart and the login path can record a device class.
"""

from __future__ import annotations

import re

from fastapi import Request
from ua_parser import parse

from schemas.models.refresh_token import DeviceInfo

_MOBILE_RE = re.compile(
    r"Mobile|Android|iPhone|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE
)
_TABLET_RE = re.compile(r"iPad|Tablet", re.IGNORECASE)


def get_client_ip(request: Request) -> str:
    """Extract the real client IP from a FastAPI ``Request``.

    Checks proxy headers in priority order before falling back to the
    direct connection address:

    1. ``CF-Connecting-IP`` — Cloudflare
    2. ``X-Forwarded-For`` — standard proxy header (first IP in list)
    3. ``X-Real-IP`` — nginx / other reverse proxies

    Returns:
        The resolved client IP string, or ``""`` if none can be found.
    """
    for header in ("CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP"):
        ip_value: str | None = request.headers.get(header)
        if ip_value:
            client_ip = ip_value.split(",")[0].strip()
            if client_ip:
                return client_ip

    return request.client.host if request.client else ""


def classify_device(user_agent: str) -> str:
    """Return ``mobile``, ``tablet`` or ``desktop`` for *user_agent*."""
    if _TABLET_RE.search(user_agent):
        return "tablet"
    if _MOBILE_RE.search(user_agent):
        return "mobile"
    return "desktop"


def parse_device_info(user_agent: str, ip_address: str = "") -> DeviceInfo:
    """Build a ``DeviceInfo`` from a raw User-Agent string."""
    browser = "unknown"
    os_name = "unknown"
    if user_agent:
        ua = parse(user_agent)
        if ua.user_agent and ua.user_agent.family != "Other":
            browser = ua.user_agent.family
        if ua.os and ua.os.family != "Other":
            os_name = ua.os.family

    return DeviceInfo(
        user_agent=user_agent or "unknown",
        ip_address=ip_address or "unknown",
        device_type=classify_device(user_agent or ""),
        browser=browser,
        os=os_name,
    )


def device_info_from_request(request: Request) -> DeviceInfo:
    return parse_device_info(
        request.headers.get("User-Agent", ""), get_client_ip(request)
    )
