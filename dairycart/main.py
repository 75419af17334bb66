"""Dairycart main application module.

This module initializes the FastAPI application that hosts the catalog:
logging, middleware, error translation and health endpoints.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI

from dairycart.api.errors import install_error_handlers
from dairycart.api.health import router as health_router
from dairycart.api.middleware import setup_middleware
from dairycart.infrastructure.config import settings
from dairycart.infrastructure.database import dispose_engine
from dairycart.infrastructure.logs import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging()
    logger.info(
        "Starting Dairycart",
        version=settings.api_version,
        debug=settings.debug,
    )

    yield

    logger.info("Shutting down Dairycart")
    await dispose_engine()


def create_app() -> FastAPI:
    """Build the FastAPI application.

    Returns:
        Application with middleware, error handlers and health routes.
    """
    application = FastAPI(
        title="Dairycart",
        description="Product catalog with variant materialization",
        version=settings.api_version,
        lifespan=lifespan,
    )
    setup_middleware(application)
    install_error_handlers(application)
    application.include_router(health_router, tags=["Health"])
    return application


app = create_app()
