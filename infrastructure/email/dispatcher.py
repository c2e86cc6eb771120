"""
Fire-and-forget email delivery.

Notifications that follow an already committed state change (welcome mail,
password-changed notice) must not hold up or fail the request. The
dispatcher runs them as background tasks, keeps a reference to each task
until it finishes and logs every failure. drain() lets shutdown and tests
wait for in-flight sends.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional

from shared.logging import get_logger

log = get_logger(__name__)


class EmailDispatcher:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, send: Awaitable[bool], *, kind: str, email: str) -> asyncio.Task:
        task = asyncio.create_task(self._run(send, kind, email))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, send: Awaitable[bool], kind: str, email: str) -> bool:
        try:
            sent = await send
        except Exception as e:
            log.error(
                "email_dispatch_failed",
                kind=kind,
                to_email=email,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        if not sent:
            log.warning("email_not_delivered", kind=kind, to_email=email)
        return bool(sent)

    async def drain(self, timeout: Optional[float] = 10.0) -> None:
        """Wait for in-flight sends; give up after *timeout* seconds."""
        if not self._tasks:
            return
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            log.warning("email_drain_timeout", pending_count=len(still_running))
