"""
Logging setup for the favorites app
"""

import logging
import logging.handlers
from pathlib import Path

from .config_manager import AppConfiguration

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER_NAME = 'favorites'

logger = logging.getLogger('favorites.core.logging_setup')

def configure_logging(config: AppConfiguration) -> logging.Logger:
    """
    Configure the 'favorites' logger hierarchy from configuration.

    Handlers installed by a previous call are replaced, so calling this
    again after a configuration reload does not duplicate output.
    """
    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(config.log_level)

    for handler in list(app_logger.handlers):
        if getattr(handler, '_favorites_handler', False):
            app_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler._favorites_handler = True  # type: ignore[attr-defined]
    app_logger.addHandler(console_handler)

    # File handler with rotation
    if config.log_file_path:
        log_path = Path(config.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            encoding='utf-8',
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler._favorites_handler = True  # type: ignore[attr-defined]
        app_logger.addHandler(file_handler)

    logger.debug("Logging configured")
    return app_logger
