"""
Policy Bot API

FastAPI application entry point: Telegram webhook plus health check.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from policybot import __version__
from policybot.config import settings
from policybot.api.routes import health, webhook
from policybot.infra.claude import ClaudeClient
from policybot.infra.mindee import MindeeClient
from policybot.infra.telegram import TelegramClient


def setup_logging() -> None:
    """Configure logging based on environment."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


async def register_webhook() -> None:
    """Register the webhook once. Failures are logged, not retried."""
    try:
        changed = await TelegramClient.get_instance().ensure_webhook()
        if changed:
            logger.info(f"Webhook registered at {settings.server_url}")
        else:
            logger.info("Webhook already up to date")
    except Exception as e:
        logger.error(f"Webhook registration failed: {e}")


async def close_clients() -> None:
    """Close HTTP clients that were opened while serving."""
    if TelegramClient._instance is not None:
        await TelegramClient._instance.close()
    if MindeeClient._instance is not None:
        await MindeeClient._instance.close()
    if ClaudeClient._instance is not None:
        await ClaudeClient._instance.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # === STARTUP ===
    setup_logging()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")

    health.set_start_time()

    missing = settings.missing_required()
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)}")

    if settings.bot_token and settings.server_url:
        await register_webhook()

    logger.info(f"Application ready at http://{settings.host}:{settings.port}")

    yield

    # === SHUTDOWN ===
    logger.info("Shutting down application...")
    await close_clients()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Policy Bot API",
    description="""
    Telegram bot that sells a car insurance policy.

    Collects the user's passport and driver's license, confirms the
    extracted data, agrees the price and sends the policy document.
    """,
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    detail = str(exc) if settings.is_development else "Internal server error"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": detail,
        },
    )


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Log request duration in debug mode."""
    start_time = time.time()

    try:
        return await call_next(request)
    finally:
        if settings.debug:
            duration = time.time() - start_time
            logger.debug(
                f"{request.method} {request.url.path} "
                f"completed in {duration:.3f}s"
            )


app.include_router(health.router)
app.include_router(webhook.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "policybot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
