"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.protocol import EmailProvider
from infrastructure.email.zeptomail import ZEPTO_API_BASE, ZeptoMailProvider
from infrastructure.http_client import HttpClient
from repositories import ensure_indexes
from routes.admin_routes import router as admin_router
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.user_routes import router as user_router
from services.container import build_container
from services.maintenance import cleanup_loop
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(
    settings: Optional[AppSettings] = None,
    email_provider: Optional[EmailProvider] = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application.

    ``email_provider`` replaces the ZeptoMail provider (tests, local runs).
    """
    if settings is None:
        settings = AppSettings()

    setup_logging(
        settings.logging.log_level,
        settings.logging.log_format,
        is_production=settings.is_production,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            environment=settings.env,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri,
            tz_aware=True,
            timeoutMS=settings.db.mongodb_timeout_ms,
            serverSelectionTimeoutMS=settings.db.mongodb_timeout_ms,
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings

        http_client = None
        provider = email_provider
        if provider is None:
            http_client = HttpClient(
                base_url=ZEPTO_API_BASE,
                timeout=settings.email.email_timeout_seconds,
            )
            provider = ZeptoMailProvider(
                settings.email,
                http_client,
                app_name=settings.app_name,
                app_url=settings.app_url,
                reset_password_url=settings.reset.reset_password_url,
                otp_expiry_minutes=settings.otp.otp_expiry_minutes,
                reset_expiry_minutes=settings.reset.reset_token_expiry_minutes,
            )

        await ensure_indexes(app.state.db)
        container = build_container(settings, app.state.db, provider)
        app.state.container = container

        cleanup_task = None
        if settings.maintenance.cleanup_interval_seconds > 0:
            cleanup_task = asyncio.create_task(
                cleanup_loop(container, settings.maintenance.cleanup_interval_seconds)
            )
        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        if cleanup_task is not None:
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task
        await container.dispatcher.drain()
        if http_client is not None:
            await http_client.aclose()
        await mongo_client.close()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=None if settings.is_production else settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Credentials are required so the browser sends the refresh cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(admin_router)

    return app
