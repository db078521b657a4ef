"""Logging helpers for cipherstore."""

import logging
import re

from cipherstore.config import StoreConfig


def setup_logging(level: str | int | None = None) -> None:
    """Set up logging configuration.

    Args:
        level: Logging level; defaults to CIPHERSTORE_LOG_LEVEL (WARNING)
    """
    if level is None:
        level = StoreConfig().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def redact(message: str, secret: str | None) -> str:
    """Replace every occurrence of a secret in a message."""
    if not secret:
        return message
    return message.replace(secret, "****")


def mask_url(url: str) -> str:
    """Mask the password segment of a database URL for logging."""
    return re.sub(r":([^:@/]+)@", ":****@", url)
