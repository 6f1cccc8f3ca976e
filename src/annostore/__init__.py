"""annostore - per-project virtual folder groups and tags for metadata objects.

Annotations live in human-editable YAML files in each project's settings
folder and are served from an in-memory, thread-safe cache.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from annostore.config import LoggingConfig

__version__ = "0.1.0"

_installed_handlers: list[logging.Handler] = []


def setup_logging(config: LoggingConfig | None = None) -> Path:
    """Configure logging to both console and rotating file.

    Calling it again replaces the handlers installed by the previous call.

    Returns:
        The log file path.
    """
    if config is None:
        from annostore.config import get_settings

        config = get_settings().log

    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "annostore.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    # File handler - detailed logging with rotation (10MB, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # Console handler - less verbose
    console_handler = logging.StreamHandler()
    console_handler.setLevel(config.level.upper())
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    for handler in (file_handler, console_handler):
        root_logger.addHandler(handler)
        _installed_handlers.append(handler)

    logging.info("Logging configured. Log file: %s", log_file.absolute())
    return log_file
