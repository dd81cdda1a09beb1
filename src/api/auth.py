"""API authentication using API keys"""
import hmac
import os
import logging
from fastapi import HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_api_keys() -> list[str]:
    """Load API keys from the API_KEYS environment variable (comma separated)"""
    api_keys_str = os.getenv("API_KEYS", "")
    if not api_keys_str:
        logger.warning("No API_KEYS configured in environment")
        return []
    return [key.strip() for key in api_keys_str.split(",") if key.strip()]


def is_valid_key(api_key: str, valid_keys: list[str]) -> bool:
    """Compare against every configured key in constant time"""
    matched = False
    for key in valid_keys:
        if hmac.compare_digest(api_key.encode(), key.encode()):
            matched = True
    return matched


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """
    Verify the bearer API key

    The key identifies a trusted client (the web frontend or an admin
    tool); the acting user is taken from the request path.

    Raises:
        HTTPException: 503 when no keys are configured, 401 for an unknown key
    """
    api_key = credentials.credentials
    valid_keys = get_api_keys()

    if not valid_keys:
        logger.error("No API keys configured - rejecting all requests")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API authentication not configured"
        )

    if not is_valid_key(api_key, valid_keys):
        logger.warning("Rejected request with invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )

    return api_key
