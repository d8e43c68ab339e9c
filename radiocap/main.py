"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from radiocap.api import events, health
from radiocap.api.health import VERSION
from radiocap.config import get_settings
from radiocap.db.session import init_db
from radiocap.schemas.schemas import ErrorResponse

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting radiocap capture pipeline...")

    # Initialize database
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down radiocap capture pipeline...")


# Create FastAPI app
app = FastAPI(
    title="radiocap",
    description="""
## Radio Capture Deduplication & Notification Pipeline

Receives bucket notifications for recordings uploaded by receiving sites,
stores one canonical record per transmission, and triggers transcription
and paging exactly once per transmission.

### Notifications
Point S3 or MinIO bucket notifications at `POST /v1/events/storage`.
When `EVENTS_AUTH_TOKEN` is set, send it in the `Authorization` header:
```
Authorization: Bearer <token>
```
    """,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if settings.debug else "An unexpected error occurred",
        ).model_dump(),
    )


# Include routers
app.include_router(health.router)
app.include_router(events.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with service info."""
    return {
        "service": "radiocap",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "radiocap.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
