"""Main entry point for the reading-quest API server"""
import logging
import os
import uvicorn
from src.config import validate_config, LOG_LEVEL

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Validate configuration and serve the API (pool and scheduler start in the app lifespan)"""
    logger.info("Validating configuration...")
    validate_config()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8080"))
    logger.info(f"Starting reading-quest API on {host}:{port}")

    uvicorn.run(
        "src.api.server:app",
        host=host,
        port=port,
        log_level=LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
