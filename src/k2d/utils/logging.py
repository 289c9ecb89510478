"""Logging setup for k2d runs.

The hook prints its result JSON on stdout, so logs go to a rotating file
under the meta directory instead of a stream handler.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from k2d.config.paths import LOG_FILENAME
from k2d.config.settings import LoggingSettings, logging_settings
from k2d.constants import K2D_LOGGER_NAME


def configure_logging(
    meta_dir: Path,
    log_level: str | None = None,
    settings: LoggingSettings | None = None,
) -> Path | None:
    """Configure the ``k2d`` package logger.

    Args:
        meta_dir: Directory that receives ``k2d.log``.
        log_level: Overrides the configured level (DEBUG, INFO, WARNING, ERROR).
        settings: Logging settings; defaults to the environment-backed singleton.

    Returns:
        The log file path, or None if the file handler could not be created.
    """
    settings = settings or logging_settings
    level = getattr(logging, (log_level or settings.level).upper(), logging.INFO)

    k2d_logger = logging.getLogger(K2D_LOGGER_NAME)
    k2d_logger.setLevel(level)
    # Keep records off the root logger (and therefore off stdout)
    k2d_logger.propagate = False
    # Clear any existing handlers to avoid duplicates on reconfigure
    for handler in list(k2d_logger.handlers):
        handler.close()
    k2d_logger.handlers.clear()

    if level == logging.DEBUG:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    log_file = meta_dir / LOG_FILENAME
    try:
        meta_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            mode="a",
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
    except OSError:
        k2d_logger.addHandler(logging.NullHandler())
        return None

    file_handler.setFormatter(formatter)
    k2d_logger.addHandler(file_handler)
    return log_file
