"""
Random code and token generators — pure, side-effect-free functions.

Every generator here protects an account, so all of them draw from the
``secrets`` module.
"""

from __future__ import annotations

import secrets
import string


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    Each digit is drawn independently, so every code of *length* digits
    (leading zeros included) is equally likely.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of random decimal digits.
    """
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure URL-safe random token.

    Args:
        length: Number of random bytes before base64 encoding (default 32,
            i.e. 256 bits). The resulting string is ~1.3x longer.

    Returns:
        URL-safe base64-encoded token string.
    """
    return secrets.token_urlsafe(length)
