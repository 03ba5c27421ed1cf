"""
Taskboard - Main Application Entry Point

FastAPI application exposing the task, comment, preference, dashboard and
account operations.
"""

import logging
import math
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from .database import init_database, close_database, get_database
from .exceptions import TaskboardError, RateLimitExceeded
from .services.context import Services

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    logger.info(f"Starting {settings.app_name}...")

    if getattr(app.state, "services", None) is None:
        if await init_database():
            logger.info("Database initialized")
        else:
            logger.warning("Database not configured or failed to initialize")
        app.state.services = Services.create(get_database())

    yield

    logger.info("Shutting down...")
    services = getattr(app.state, "services", None)
    if services is not None:
        try:
            await services.limiter.close()
        except Exception as e:
            logger.warning(f"Failed to close rate limiter during shutdown: {e}")

    try:
        await close_database()
    except Exception as e:
        logger.warning(f"Failed to close database during shutdown: {e}")

    logger.info("Shutdown complete")


async def taskboard_error_handler(request: Request, exc: TaskboardError):
    """Render domain errors as JSON envelopes with their HTTP status."""
    headers = None
    if isinstance(exc, RateLimitExceeded):
        headers = {"Retry-After": str(math.ceil(exc.retry_after_ms / 1000))}
    return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are validation errors like any other."""
    reasons = [f"{'.'.join(str(p) for p in err['loc'][1:])}: {err['msg']}" for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "message": "; ".join(reasons)},
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal server error"}
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-wired services (tests); built at startup when omitted
    """
    app = FastAPI(
        title=settings.app_name,
        description="Task management API with per-user ownership, rate limiting and audit history",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TaskboardError, taskboard_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    from .web.routes import router as api_router
    app.include_router(api_router)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check including database status."""
        services = request.app.state.services
        db_health = {"status": "not_configured"}
        try:
            db = services.db if services else get_database()
            db_health = await db.health_check()
        except Exception as e:
            db_health = {"status": "error", "error": str(e)}

        return {
            "status": "healthy",
            "service": settings.app_name,
            "environment": settings.environment,
            "services": {
                "database": db_health.get("status", "unknown"),
                "redis": bool(settings.redis_url),
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "taskboard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
