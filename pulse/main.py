"""
Main application entry point.

FastAPI server exposing the activity tracking API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from .database import init_database, close_database, get_database
from .utils.datetime_utils import get_local_now
from .web.routes import router as activity_router
from . import __version__

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    if await init_database():
        logger.info("Database ready")
    else:
        logger.warning("Database not available, requests will retry initialization")

    yield

    logger.info("Shutting down...")
    try:
        await close_database()
    except Exception as e:
        logger.warning(f"Failed to close database during shutdown: {e}")
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Tracks what each user is working on and reports time spent",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(activity_router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    """Detailed health check endpoint."""
    db_health = await get_database().health_check()
    return {
        "status": "healthy" if db_health.get("status") == "healthy" else "degraded",
        "timestamp": get_local_now().isoformat(),
        "services": {
            "database": db_health.get("status", "unknown"),
        },
    }


@app.get("/health/db")
async def db_health():
    """Database connection pool health check."""
    db = get_database()
    if not db._initialized:
        return {
            "status": "not_initialized",
            "error": "Database not yet initialized",
        }
    return {
        "status": "healthy",
        "timestamp": get_local_now().isoformat(),
        **await db.get_pool_status(),
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pulse.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
