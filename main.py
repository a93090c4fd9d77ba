"""
FastAPI Competitor Research Chat Application.
"""

import logging
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.correlation import generate_error_reference
from app.db.database import connect_to_mongo, close_mongo_connection
from app.middleware import timing_middleware
from app.api import conversation_router, status_router
from app.schemas.base import BaseResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting up...")
    await connect_to_mongo()

    # Initialize database indexes
    from app.dependencies import create_indexes, cleanup_dependencies
    await create_indexes()
    logger.info("Database indexes created")

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await cleanup_dependencies()
    await close_mongo_connection()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Conversational competitive-analysis project creation",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware (dev-friendly)
cors_kwargs = dict(
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
    expose_headers=["X-Correlation-ID", "X-Process-Time-ms"],
)
# In DEBUG, allow any origin via regex to ease local dev across ports
if settings.DEBUG:
    cors_kwargs["allow_origin_regex"] = ".*"

app.add_middleware(CORSMiddleware, **cors_kwargs)
app.middleware("http")(timing_middleware)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    reference = generate_error_reference()
    logger.error(f"Global exception ({reference}): {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=BaseResponse.error(
            "Internal server error",
            details={"reference": reference},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            correlation_id=request.headers.get("X-Correlation-ID"),
        )
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.APP_VERSION}


app.include_router(
    conversation_router,
    prefix="/api/v1"
)

app.include_router(
    status_router,
    prefix="/api/v1"
)


def main():
    """Run the application."""
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
