"""
Input validators — framework-agnostic, pure functions.

DTOs call these from pydantic field validators; services call
``normalize_email`` so every lookup and insert agrees on one spelling.
"""

from __future__ import annotations

import re

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
FULLNAME_MIN_LENGTH = 2
FULLNAME_MAX_LENGTH = 100
PASSWORD_MAX_LENGTH = 128

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_OTP_RE = re.compile(r"^\d+$")
_OPAQUE_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{32,128}$")


def normalize_email(email: str) -> str:
    """Trim and lowercase *email*."""
    return email.strip().lower()


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email.strip()))


def validate_username(username: str) -> list[str]:
    """Return the list of rules *username* breaks (empty when valid)."""
    problems = []
    if len(username) < USERNAME_MIN_LENGTH:
        problems.append(f"At least {USERNAME_MIN_LENGTH} characters")
    if len(username) > USERNAME_MAX_LENGTH:
        problems.append(f"At most {USERNAME_MAX_LENGTH} characters")
    if username and not _USERNAME_RE.match(username):
        problems.append("Only letters, numbers and underscores")
    return problems


def validate_fullname(fullname: str) -> list[str]:
    problems = []
    stripped = fullname.strip()
    if len(stripped) < FULLNAME_MIN_LENGTH:
        problems.append(f"At least {FULLNAME_MIN_LENGTH} characters")
    if len(stripped) > FULLNAME_MAX_LENGTH:
        problems.append(f"At most {FULLNAME_MAX_LENGTH} characters")
    return problems


def validate_password(password: str, min_length: int = 6) -> list[str]:
    """Return the missing password requirements (empty when valid)."""
    if not password:
        return ["Password is required"]

    missing = []
    if len(password) < min_length:
        missing.append(f"At least {min_length} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        missing.append(f"Maximum {PASSWORD_MAX_LENGTH} characters")
    return missing


def validate_otp_format(code: str, length: int = 6) -> bool:
    """True when *code* (after trimming) is exactly *length* digits."""
    code = code.strip()
    return len(code) == length and bool(_OTP_RE.match(code))


def is_well_formed_token(token: str) -> bool:
    """True when *token* looks like a URL-safe opaque token we could have issued."""
    return bool(token) and bool(_OPAQUE_TOKEN_RE.match(token))
