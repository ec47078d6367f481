"""
FastAPI Application Factory.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:app --host 0.0.0.0 --port 8080
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.database import close_pool, get_pool
from config.indexes import get_index_registry
from config.settings import get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware
from searchbox.errors import DuplicateFacetConfig
from searchbox.handler import reset_search_service


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup configures logging, loads the index configs (a duplicate facet
    declaration aborts startup) and opens the connection pool. Shutdown
    drops the cached search service and closes the pool.
    """
    settings = get_settings()

    configure_logging(
        json_logs=settings.json_logs,
        log_level="DEBUG" if settings.debug else settings.log_level,
    )

    logger.info(
        "Starting search API",
        environment=settings.environment,
        port=settings.port,
    )

    try:
        registry = get_index_registry()
    except DuplicateFacetConfig as e:
        logger.error("Invalid index configuration", error=str(e))
        raise
    logger.info("Index configuration ready", indexes=registry.index_names or ["<default>"])

    if app.state.open_pool:
        get_pool()

    yield

    reset_search_service()
    close_pool()
    logger.info("Shutting down search API")


def create_app(open_pool: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        open_pool: Open the database pool on startup (tests turn it off)

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="Searchbox API",
        description="""
        Algolia-compatible search over Postgres full-text indexes.

        ## Main Endpoints

        - `/api/search` - Batch of search / facet value search requests
        - `/1/indexes/*/queries` - Same, at the path algoliasearch clients use

        ## Health Checks

        - `/health` - Basic health check
        - `/health/detailed` - Detailed health with database status
        - `/ready` - Kubernetes readiness probe
        - `/live` - Kubernetes liveness probe
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.open_pool = open_pool

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router, tags=["Health"])

    from api.routes.search import router as search_router
    app.include_router(search_router)

    return app


# Create default app instance for uvicorn
# Usage: uvicorn api.app:app
app = create_app()
