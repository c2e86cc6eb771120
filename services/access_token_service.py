"""
Access token issuer.

Mints and verifies short-lived signed JWTs. HS256 with the server secret by
default, RS256 when both JWT_PRIVATE_KEY and JWT_PUBLIC_KEY are configured.

Verification is stateless: a valid token says who the caller was when it was
minted, not whether the account is still active or verified. Callers pair it
with UserService.resolve_principal for that.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from config import JWTSettings
from errors import AuthenticationError, ErrorCode
from schemas.models.user import UserDoc
from shared.datetime_utils import utcnow

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    username: str
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime


def _pem(value: str) -> bytes:
    # Keys provided via env often carry literal \n sequences
    return value.replace("\\n", "\n").encode("utf-8")


class AccessTokenService:
    def __init__(
        self, settings: JWTSettings, clock: Callable[[], datetime] = utcnow
    ) -> None:
        if settings.use_rs256:
            self._signing_key = _pem(settings.jwt_private_key)
            self._verifying_key = _pem(settings.jwt_public_key)
        else:
            if not settings.jwt_secret:
                raise RuntimeError(
                    "JWT_SECRET must be set when RS256 keys are not provided"
                )
            self._signing_key = self._verifying_key = settings.jwt_secret
        self._algorithm = settings.algorithm
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self._ttl = timedelta(seconds=settings.access_token_ttl_seconds)
        self._clock = clock

    @property
    def expires_in(self) -> int:
        """Lifetime of a freshly issued token, in seconds."""
        return int(self._ttl.total_seconds())

    def issue(self, user: UserDoc) -> str:
        now = self._clock()
        claims = {
            "iss": self._issuer,
            "aud": self._audience,
            "sub": str(user.id),
            "username": user.username,
            "email": user.email,
            "role": user.role,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
            "typ": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(claims, self._signing_key, algorithm=self._algorithm)

    def verify(self, token: str) -> AccessClaims:
        """Decode *token* and return its claims.

        Raises:
            AuthenticationError: access_token_expired when past ``exp``,
                malformed_token for any other signature or claim failure.
        """
        try:
            claims = jwt.decode(
                token,
                self._verifying_key,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError(
                "Access token expired", code=ErrorCode.ACCESS_TOKEN_EXPIRED
            ) from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationError(
                "Invalid access token", code=ErrorCode.MALFORMED_TOKEN
            ) from exc

        if claims.get("typ") != ACCESS_TOKEN_TYPE:
            raise AuthenticationError(
                "Invalid access token", code=ErrorCode.MALFORMED_TOKEN
            )

        return AccessClaims(
            user_id=claims["sub"],
            username=claims.get("username", ""),
            email=claims.get("email", ""),
            role=claims.get("role", ""),
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
