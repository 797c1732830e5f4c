"""
Chat Core API - Main Application
"""
import logging
import sys
import traceback
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from .core.config import settings
from .core.errors import ChatError, ErrorCode
from .core.rate_limit import limiter
from .database import init_db
from .api.v1 import api_router
from .services.scheduler_service import scheduler_service

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

logger = logging.getLogger(__name__)


def _database_target() -> str:
    """Where the engine points, without credentials"""
    if settings.DATABASE_URL_OVERRIDE:
        return settings.DATABASE_URL_OVERRIDE.split("@")[-1]
    return f"{settings.DATABASE_HOST}:{settings.DATABASE_PORT}/{settings.DATABASE_NAME}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start the presence sweep; stop the scheduler on exit."""
    banner = "-" * 60
    print(banner)
    print(f"[CHAT] {settings.PROJECT_NAME} ({settings.ENVIRONMENT})")

    try:
        init_db()
        print(f"[CHAT] Database ready: {_database_target()}")

        scheduler_service.start()
        jobs = len(scheduler_service.scheduler.get_jobs()) if scheduler_service.running else 0
        print(f"[CHAT] Scheduler running with {jobs} job(s)")
    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        raise

    print(f"[CHAT] Listening on http://{settings.API_HOST}:{settings.API_PORT}{settings.API_V1_PREFIX}")
    if settings.DEBUG:
        print(f"[CHAT] Docs at http://{settings.API_HOST}:{settings.API_PORT}/docs")
    print(banner)

    yield

    print("[CHAT] Shutting down")
    try:
        scheduler_service.shutdown()
    except Exception as e:
        logger.error(f"Scheduler shutdown failed: {e}")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Chat messaging and social graph core: friends, conversations, messages, read state and change feeds",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Rate limiter
app.state.limiter = limiter

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_id() -> str:
    return str(uuid.uuid4())[:8]


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    """Domain errors are safe to show: render them with their own status and code."""
    if exc.status_code >= 500:
        error_id = _error_id()
        logger.error(f"[ERROR_ID: {error_id}] {exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "code": exc.code,
                "detail": "An internal server error occurred. Please try again later.",
                "error_id": error_id
            }
        )

    logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "code": ErrorCode.RATE_LIMITED,
            "detail": f"Rate limit exceeded: {exc.detail}"
        }
    )


# Global exception handler
@app.exception_handler(SQLAlchemyError)
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unexpected errors."""
    # Generate a unique error ID for tracking
    error_id = _error_id()

    # Always log the full error on the server
    logger.error(
        f"[ERROR_ID: {error_id}] Unhandled exception on {request.method} {request.url.path}",
        exc_info=True
    )

    if settings.DEBUG:
        # Development: return detailed error for debugging
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "code": ErrorCode.INTERNAL_ERROR,
                "detail": str(exc),
                "error_id": error_id,
                "type": type(exc).__name__,
                "path": str(request.url.path),
                "traceback": traceback.format_exc()
            }
        )
    else:
        # Production: return generic error, hide internal details
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "code": ErrorCode.INTERNAL_ERROR,
                "detail": "An internal server error occurred. Please try again later.",
                "error_id": error_id
            }
        )


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "running",
        "environment": settings.ENVIRONMENT,
        "docs_url": "/docs" if settings.DEBUG else "disabled",
        "features": [
            "Friend requests & friendships",
            "Direct and group conversations",
            "Messages with replies, edits and soft deletes",
            "Media messages via object storage keys",
            "Read receipts & unread counts",
            "Cursor pagination",
            "Polling change feeds",
            "Presence heartbeats"
        ]
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    from app.utils.time_utils import to_utc_isoformat, utc_now

    try:
        scheduled_jobs = len(scheduler_service.scheduler.get_jobs()) if scheduler_service.running else 0

        return {
            "status": "healthy",
            "timestamp": to_utc_isoformat(utc_now()),
            "service": "chat-core-api",
            "version": "1.0.0",
            "services": {
                "database": {
                    "status": "connected",
                    "host": settings.DATABASE_HOST
                },
                "scheduler": {
                    "status": "running" if scheduler_service.running else "stopped",
                    "scheduled_jobs": scheduled_jobs
                }
            }
        }

    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e)
        }


# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


if __name__ == "__main__":
    # Run the application
    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
