"""
Cryptographic helpers — password hashing and token hashing.

Uses argon2id for passwords (via argon2-cffi) and SHA-256 for one-time codes
and opaque tokens, so no bearer secret is ever persisted in plaintext.
"""

from __future__ import annotations

import hashlib
import hmac

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError


class CredentialHasher:
    """One-way password hashing with a configurable argon2id cost.

    A single instance is built at startup from ``HashingSettings`` and
    injected wherever passwords are hashed or checked.
    """

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 4,
    ) -> None:
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, plain_password: str) -> str:
        """Hash *plain_password* with argon2id.

        Returns:
            Argon2 hash string (includes algorithm parameters and salt).
        """
        return self._hasher.hash(plain_password)

    def verify(self, plain_password: str, password_hash: str) -> bool:
        """Return ``True`` if *plain_password* matches *password_hash*.

        Wrong passwords and unparseable hashes both yield ``False``.
        """
        try:
            return self._hasher.verify(password_hash, plain_password)
        except (VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        """True when *password_hash* was produced with different cost parameters."""
        try:
            return self._hasher.check_needs_rehash(password_hash)
        except InvalidHashError:
            return True


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used to hash OTP codes, refresh tokens and reset tokens before storing
    them, so a database leak does not hand out live credentials.

    Args:
        token: The plaintext token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def digests_match(left: str, right: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return hmac.compare_digest(left.encode("ascii"), right.encode("ascii"))
