"""API middleware for rate limiting and CORS"""
import logging
import os
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = "100/minute"

# Per-route limits are set with @limiter.limit; this is the fallback
limiter = Limiter(key_func=get_remote_address, default_limits=[DEFAULT_RATE_LIMIT])


def setup_cors(app: FastAPI) -> None:
    """Allow the reading web app (CORS_ORIGINS, comma separated) to call the API"""
    cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    cors_origins = [origin.strip() for origin in cors_origins if origin.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    logger.info(f"CORS configured for origins: {cors_origins}")


def setup_rate_limiting(app: FastAPI) -> None:
    """Attach the limiter and its 429 handler"""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    logger.info(f"Rate limiting configured: {DEFAULT_RATE_LIMIT} per IP by default")
