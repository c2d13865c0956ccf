"""FastAPI application factory and lifespan management.

create_app() builds the fully configured application: logging,
middleware, exception handlers, and routes. The lifespan context
manager opens the database engine and the Person Directory client on
startup and releases both on shutdown.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from reconciliation.api.dependencies import get_settings
from reconciliation.api.middleware import RequestTracingMiddleware, register_exception_handlers
from reconciliation.api.routes import api_router
from reconciliation.core.config import Settings
from reconciliation.core.logging import setup_logging
from reconciliation.db.session import create_engine, create_session_factory
from reconciliation.services.people.directory import HttpPersonDirectory

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown."""
    settings: Settings = app.state.settings
    logger.info("application_starting", version="0.1.0", debug=settings.debug)

    engine = create_engine(settings)
    directory = HttpPersonDirectory(settings)
    app.state.session_factory = create_session_factory(engine)
    app.state.person_directory = directory
    try:
        yield
    finally:
        logger.info("application_shutting_down")
        await directory.close()
        await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return a fully configured FastAPI application."""
    if settings is None:
        settings = get_settings()

    setup_logging(settings)

    app = FastAPI(
        title="Reconciliation Case Service",
        description="Case lifecycle core for dispute resolution: filing, mediation, settlement",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings

    app.add_middleware(RequestTracingMiddleware)

    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.api_prefix)

    return app
