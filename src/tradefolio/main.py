"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tradefolio.app_context import get_app_context
from tradefolio.config.settings import get_settings
from tradefolio.config.logging_config import setup_logging
from tradefolio.api.routers import quotes_router, portfolio_router
from tradefolio.core.exceptions import AppError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging()
    resolver = get_app_context().resolver
    logger.info("Quote sources: %s", ", ".join(s.name for s in resolver.sources))
    yield
    await get_app_context().aclose()


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Multi-source quote resolution and decimal portfolio ledger",
    version=settings.app_version,
    lifespan=lifespan,
)

# Include routers
app.include_router(quotes_router)
app.include_router(portfolio_router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Global handler for application errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.message},
    )


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
