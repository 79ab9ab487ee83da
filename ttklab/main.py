"""TTK Lab - FastAPI Backend.

Time-to-kill simulation service over a weapon/attachment/shield catalog.
"""

import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .api import api_router
from .services.data_loader import load_catalog_from_dir

settings = get_settings()

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    # Startup
    configure_logging(settings.log_level)
    logger.info(f"Starting {settings.app_name} API...")
    app.state.catalog = load_catalog_from_dir(settings.data_dir)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name} API...")
    app.state.catalog = None


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="""
    TTK Lab API - weapon time-to-kill simulation.

    Features:
    - Monte Carlo and deterministic sweeps over weapon x tier x attachments x target
    - Confidence intervals for mean and median TTK
    - Streaming progress over Server-Sent Events
    - Pre-patch baseline comparison
    """,
    version="1.0.0",
    lifespan=lifespan,
)

cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

frontend_url = os.environ.get("FRONTEND_URL")
if frontend_url:
    cors_origins.append(frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=f"/api/{settings.api_version}")


@app.get("/")
async def root():
    """Root endpoint - API info."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    catalog = getattr(app.state, "catalog", None)
    return {
        "status": "healthy",
        "catalog_loaded": catalog is not None,
    }


# For running with uvicorn directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ttklab.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8000)),
        reload=True,
    )
