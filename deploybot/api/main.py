"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from deploybot.api.middleware import ResourceMiddleware, SessionMiddleware
from deploybot.api.routes import router
from deploybot.chat.base import ChatClient
from deploybot.chat.telegram import TelegramClient
from deploybot.config import Settings, get_settings
from deploybot.database.session import Database
from deploybot.errors import ServiceError, ValidationError


logger = logging.getLogger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "invalid request"


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return exc.to_response()


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return ValidationError(_describe_validation_error(exc)).to_response()


def create_app(
    settings: Settings | None = None,
    db: Database | None = None,
    chat: ChatClient | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Build the webhook application.

    Handles passed in are shared, not owned: the caller closes them. Handles
    built here from ``settings`` are closed on shutdown.
    """
    settings = settings or get_settings()
    owned: list[Database | ChatClient] = []
    if db is None:
        db = Database.from_settings(settings)
        owned.append(db)
    if chat is None:
        chat = TelegramClient.from_settings(settings)
        owned.append(chat)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")

        if settings.init_db_on_startup:
            await db.init_db()
            logger.info("Database initialized")

        yield

        logger.info("Shutting down...")
        for handle in owned:
            await handle.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Relays CI/CD job lifecycle webhooks into chat notifications",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db
    app.state.chat = chat
    app.state.clock = clock

    # Last added runs first: resources must be attached before the session lookup
    app.add_middleware(
        SessionMiddleware,
        header_name=settings.auth_header,
        unknown_token_policy=settings.unknown_token_policy,
    )
    app.add_middleware(ResourceMiddleware)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    settings = get_settings()

    uvicorn.run(
        "deploybot.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
