"""
Main FastAPI application for the Family Taxi ride-hailing service.
Passengers request trips, drivers poll for nearby requests and move trips
through their lifecycle, admins manage accounts.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from family_taxi.core.config import settings
from family_taxi.core.database import engine, Base, AsyncSessionLocal
from family_taxi.core.exceptions import register_exception_handlers
from family_taxi.core.logging import setup_logging
from family_taxi.api.v1.api import api_router
from family_taxi.models import user, trip, location  # noqa: F401  register tables
from family_taxi.services.accounts import ensure_default_admin

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    logger.info("Starting Family Taxi API...")

    # Create database tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await ensure_default_admin(session)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await engine.dispose()

# Create FastAPI app
app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Ride-hailing API with trip lifecycle and nearest-trip matching",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"{settings.PROJECT_NAME} API",
        "version": VERSION,
        "docs": "/docs"
    }

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "family-taxi"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "family_taxi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development(),
        log_level="info"
    )
