import logging
import os
from typing import Optional


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structured logging defaults for the application."""
    resolved = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
