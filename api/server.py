"""FastAPI server for the order integration service.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import (
    health,
    integration,
    invoices,
    logs,
    metrics,
)
from core.observability import configure_logging_from_env, get_logger
from core.services import get_services

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    services = get_services()
    services.init_storage()
    if services.hub is not None:
        await services.hub.start()
    logger.info("Order Integration API starting up...")

    yield

    # Shutdown
    if services.hub is not None:
        await services.hub.stop()
    logger.info("Order Integration API shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Order Integration API",
        description="Marketplace order and invoice integration with the ERP, with live step logs",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(integration.router, prefix="/integration", tags=["Integration"])
    app.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
    app.include_router(logs.router, tags=["Logs"])
    app.include_router(metrics.router, tags=["Metrics"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    configure_logging_from_env()
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
