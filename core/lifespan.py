"""
Define application startup and shutdown procedures
"""

from contextlib import asynccontextmanager
import re
from fastapi import FastAPI
from core.config import get_settings
from core.logger import logger


def _log_setting(key: str, value):
    """Log a setting, masking sensitive values like passwords and secrets"""
    if ("PASSWORD" in key or "SECRET" in key) and value is not None:
        logger.info("  %s: %s", key, "*****")
    elif "ENDPOINT_URL" in key and value is not None:
        # Mask credentials embedded in endpoint URLs if present
        masked_value = re.sub(r"://(.*?):(.*?)@", r"://\1:*****@", value)
        logger.info("  %s: %s", key, masked_value)
    else:
        logger.info("  %s: %s", key, value)


# Handle startup/shutdown tasks
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("In lifespan...starting up")
    logger.info("Configuration Settings:")

    settings = get_settings()

    # Log computed fields first (they don't appear in vars())
    computed_fields = {
        "S3_BUCKET_NAME": settings.S3_BUCKET_NAME,
        "DYNAMODB_TABLE_NAME": settings.DYNAMODB_TABLE_NAME,
    }

    for key, value in computed_fields.items():
        _log_setting(key, value)

    # Log remaining settings
    for key, value in vars(settings).items():
        _log_setting(key, value)

    logger.info("In lifespan...yield")
    try:
        yield
    finally:
        # Shutdown
        logger.info("In lifespan...shutting down")
