"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes
- Middleware (logging, CORS)
- Rate limiting
- Click tracking lifecycle (queue + background worker started on startup,
  drained and stopped on shutdown)
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shortlink.api import endpoints
from shortlink.core.logging_config import setup_logging
from shortlink.core.rate_limit import limiter
from shortlink.core.setting import EnvSettingsOptions, settings
from shortlink.core.worker_manager import (
    click_tracking_stats,
    initialize_click_tracking,
    shutdown_click_tracking,
)
from shortlink.db.session import create_tables
from shortlink.middleware.logging import add_logging_middleware

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Shortlink",
    description="URL shortening service with asynchronous click analytics",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health endpoints defined before router to match before catch-all route
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint for health checks."""
    return {
        "message": "Shortlink URL Shortener",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns:
        Health status plus click queue and worker counters
    """
    return {
        "status": "healthy",
        "click_tracking": click_tracking_stats(),
    }


app.include_router(endpoints.router, tags=["URL Shortener"])


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    if settings.ENV_SETTING == EnvSettingsOptions.development:
        await create_tables()
    await initialize_click_tracking()
    logger.info(f"Shortlink started ({settings.ENV_SETTING.value})")


@app.on_event("shutdown")
async def shutdown_event():
    """Drain click tracking on shutdown."""
    await shutdown_click_tracking()
