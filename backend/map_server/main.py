"""FastAPI application entrypoint and configuration.

This module provides the application factory that wires the polygon and
map object routers, the problem-details error translator, CORS, and a
health check. The MongoDB storage handle is created once in the
application lifespan and shared by all requests through ``app.state``.

Example:
    The application can be run with uvicorn:
        $ uvicorn map_server.main:app --reload
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import fastapi
import fastapi.exceptions
from fastapi.middleware import cors

from map_server.api import objects, polygons, problems
from map_server.core import config
from map_server.core import logging as app_logging
from map_server.db import database

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
    """Open the storage handle at startup and close it at shutdown.

    Index provisioning happens inside ``MongoStore``; if it fails the
    exception aborts startup.
    """
    settings = config.get_settings()
    store = database.MongoStore(settings)
    app.state.store = store
    logger.info("Connected to MongoDB database %s", settings.database_name)
    try:
        yield
    finally:
        store.close()


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Unhandled exceptions are rendered as ``application/problem+json`` by
    ``ProblemDetailsMiddleware``; raw error text is only exposed when
    settings select the development environment. CORS is the outermost
    layer so error responses carry CORS headers too.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    app_logging.configure_logging(settings)

    app = fastapi.FastAPI(title="Map Server", version="0.1.0", lifespan=lifespan)

    app.include_router(polygons.router)
    app.include_router(objects.router)

    app.add_exception_handler(
        fastapi.exceptions.RequestValidationError,
        problems.request_validation_handler,  # type: ignore[arg-type]
    )
    app.add_middleware(
        problems.ProblemDetailsMiddleware,  # type: ignore[arg-type]
        expose_details=settings.is_development,
    )
    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers."""
        return {"status": "ok"}

    return app


app = create_app()
