"""
This module configures loguru for the API process.
Development gets a coloured console format, production gets one JSON
document per line.
imdb_api.logger.py
"""
import os
import sys

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
APP_ENV = os.getenv("APP_ENV", "development")

DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[request_id]}</cyan> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


def configure_logging(level: str = LOG_LEVEL, serialize: bool = APP_ENV == "production"):
    logger.remove()
    logger.configure(extra={"request_id": "-", "service": "imdb-api"})
    if serialize:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=DEV_FORMAT, colorize=True)
    logger.debug("Logging configured with level {}", level)
