"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.api.routes import router
from src.api.metrics_routes import router as metrics_router
from src.api.middleware import setup_cors, setup_rate_limiting
from src.config import ENABLE_REMINDER_SCHEDULER, LOG_LEVEL, validate_config
from src.db.connection import db
from src.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ConnectionError,
    ReadingQuestError,
    RecordNotFoundError,
    ValidationError,
)
from src.scheduler.reminder_scheduler import reminder_scheduler
from src.services import init_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases
ERROR_STATUS = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (RecordNotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ConnectionError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: ReadingQuestError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting API server...")
    validate_config()
    await db.init_pool()
    logger.info("Database pool initialized")

    init_container(db, reminder_scheduler)

    if ENABLE_REMINDER_SCHEDULER:
        await reminder_scheduler.start()
    else:
        logger.info("Reminder scheduler disabled by configuration")

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    await reminder_scheduler.stop()
    await db.close_pool()
    logger.info("Database pool closed")


def create_api_application() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Reading Quest API",
        description="Check-ins, streaks, badges, levels and reminders for young readers",
        version="1.0.0",
        lifespan=lifespan
    )

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)

    # Include routes
    app.include_router(router)
    app.include_router(metrics_router)

    @app.exception_handler(ReadingQuestError)
    async def domain_exception_handler(request: Request, exc: ReadingQuestError):
        return JSONResponse(
            status_code=status_for(exc),
            content=exc.to_dict()
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    logger.info("FastAPI application created")

    return app


app = create_api_application()
