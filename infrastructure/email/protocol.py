"""EmailProvider protocol. Services depend on this, not the concrete implementation.

Every method reports delivery as a bool and never raises for transport
failures; callers decide whether a failed send matters.
"""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send_verification_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool: ...

    async def send_welcome_email(
        self, email: str, user_name: Optional[str]
    ) -> bool: ...

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], reset_token: str
    ) -> bool: ...

    async def send_password_changed_email(
        self, email: str, user_name: Optional[str]
    ) -> bool: ...
