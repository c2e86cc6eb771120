#!/usr/bin/env python3
"""
Credential cleanup runner

Runs a single sweep of expired one-time codes, refresh tokens and reset
tokens. Meant for cron when the in-process sweep is disabled
(CLEANUP_INTERVAL_SECONDS=0).
"""

import asyncio
import os
import sys

# Ensure project root is on the path
ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ROOT_DIR)

from pymongo.asynchronous.mongo_client import AsyncMongoClient  # noqa: E402

from config import AppSettings  # noqa: E402
from infrastructure.email.zeptomail import ZEPTO_API_BASE, ZeptoMailProvider  # noqa: E402
from infrastructure.http_client import HttpClient  # noqa: E402
from services.container import build_container  # noqa: E402
from services.maintenance import run_cleanup  # noqa: E402
from shared.logging import get_logger, setup_logging  # noqa: E402

log = get_logger(__name__)


async def sweep(settings: AppSettings) -> int:
    client: AsyncMongoClient = AsyncMongoClient(
        settings.db.mongodb_uri,
        tz_aware=True,
        timeoutMS=settings.db.mongodb_timeout_ms,
        serverSelectionTimeoutMS=settings.db.mongodb_timeout_ms,
    )
    http_client = HttpClient(
        base_url=ZEPTO_API_BASE, timeout=settings.email.email_timeout_seconds
    )
    try:
        container = build_container(
            settings,
            client[settings.db.db_name],
            ZeptoMailProvider(settings.email, http_client, app_name=settings.app_name),
        )
        report = await run_cleanup(container)
        return report.total
    finally:
        await http_client.aclose()
        await client.close()


def main():
    """Run one cleanup sweep and exit non-zero on failure."""
    settings = AppSettings()
    setup_logging(
        settings.logging.log_level,
        settings.logging.log_format,
        is_production=settings.is_production,
    )

    try:
        deleted = asyncio.run(sweep(settings))
    except KeyboardInterrupt:
        log.info("cleanup_interrupted")
    except Exception as e:
        log.error("cleanup_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)
    else:
        log.info("cleanup_finished", deleted_count=deleted)


if __name__ == "__main__":
    main()
