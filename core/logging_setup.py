"""
Logging configuration for workspace-indexer entry points.
"""

import logging
from typing import Optional

from .models.config import GlobalSettings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    settings: Optional[GlobalSettings] = None,
    level: Optional[str] = None
) -> None:
    """
    Configure root logging from global settings.

    ``level`` overrides the configured level (e.g. from a --verbose flag).
    When file logging is enabled, records also go to the global log file.
    """
    settings = settings or GlobalSettings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    handlers = [logging.StreamHandler()]
    log_file = settings.get_log_file()
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers, force=True)

    # qdrant_client and httpx are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
