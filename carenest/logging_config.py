"""Logging setup for applications embedding the booking core."""

import logging
from typing import Optional

from carenest.config import Settings, get_settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure logging based on environment."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )
    logging.getLogger("httpcore").setLevel(logging.WARNING)
