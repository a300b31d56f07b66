"""
Logging Configuration Module
Console and rotating-file logging for the sync service, scripts and scheduler.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from dockmaster_sync.config_manager import ConfigManager

# Chatty libraries kept at WARNING regardless of the configured level
QUIET_LOGGERS = ('urllib3', 'requests', 'sqlalchemy.engine', 'apscheduler')

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = './logs/dockmaster_sync.log'


def _build_handlers(log_config: dict, formatter: logging.Formatter) -> List[logging.Handler]:
    """Console handler plus a size-rotated file handler (10MB x 5 by default)."""
    log_path = Path(log_config.get('file', DEFAULT_LOG_FILE))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    console_handler = logging.StreamHandler(sys.stdout)
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=log_config.get('max_bytes', 10485760),
        backupCount=log_config.get('backup_count', 5)
    )

    handlers = [console_handler, file_handler]
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Overrides ``logging.level`` from config (e.g. 'DEBUG' for --verbose)
    """
    log_config = ConfigManager().get_logging_config()

    level_name = str(level or log_config.get('level', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(log_config.get('format', DEFAULT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    for handler in _build_handlers(log_config, formatter):
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``."""
    return logging.getLogger(name)
