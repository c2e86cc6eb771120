"""
Best-effort cleanup of expired and spent credentials.

Nothing depends on this for correctness: every read already filters on
``expires_at > now``. The sweep only keeps the collections small.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from errors import AppError
from services.container import ServiceContainer
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class CleanupReport:
    otps: int = 0
    refresh_tokens: int = 0
    reset_tokens: int = 0

    @property
    def total(self) -> int:
        return self.otps + self.refresh_tokens + self.reset_tokens


async def run_cleanup(container: ServiceContainer) -> CleanupReport:
    report = CleanupReport(
        otps=await container.otp.cleanup_expired(),
        refresh_tokens=await container.refresh_tokens.cleanup_expired(),
        reset_tokens=await container.password_resets.cleanup_expired(),
    )
    log.info(
        "cleanup_completed",
        otp_count=report.otps,
        refresh_token_count=report.refresh_tokens,
        reset_token_count=report.reset_tokens,
    )
    return report


async def cleanup_loop(container: ServiceContainer, interval_seconds: int) -> None:
    """Run run_cleanup every *interval_seconds* until cancelled.

    A failed sweep is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_cleanup(container)
        except AppError as e:
            log.error("cleanup_failed", error=e.message)
