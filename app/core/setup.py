"""
Application setup and initialization.

Early initialization that must happen before the FastAPI application is
created: environment loading, Sentry, logging and security validation.
"""
import os

from dotenv import load_dotenv

from app.config.sentry import init_sentry
from app.utils.logger import get_logger, configure_logging


def setup_application() -> None:
    """
    Initialize application environment and configuration.

    The order is significant:
    1. Load environment variables from .env (needed by everything else)
    2. Initialize Sentry (so later import errors are captured)
    3. Configure logging
    4. Validate security settings (refuse to start with an insecure configuration)

    Raises:
        AppError: If security validation fails (prevents app from starting)
    """
    load_dotenv()

    init_sentry()

    configure_logging(
        log_level=os.getenv("LOG_LEVEL", "info"),
        log_format=os.getenv("LOG_FORMAT", "json"),
        log_file=os.getenv(
            "LOG_FILE",
            "app.log" if os.getenv("ENVIRONMENT") == "production" else None,
        ),
        log_dir=os.getenv("LOG_DIR", "logs"),
    )

    logger = get_logger(__name__)

    # Imported here so settings are read after .env is loaded
    from app.config.security import validate_security_settings

    try:
        validate_security_settings()
        logger.info("Security settings validated successfully")
    except Exception as e:
        logger.critical("Security validation failed - application cannot start", error=str(e))
        raise
