"""
Logging configuration for League of Prono.

Console output for development, plus optional rotating log files for the
application, for errors only, and for the background scheduler.
"""

import logging
import logging.handlers
import os
from typing import Optional

from . import config


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset_color = self.COLORS["RESET"]

        # Work on a copy so file handlers never see escape codes
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{log_color}{record.levelname}{reset_color}"

        return super().format(record)


def setup_logging(
    level: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_dir: Optional[str] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name, defaults to ``config.LOG_LEVEL``
        log_to_file: Write rotating log files, defaults to ``config.LOG_TO_FILE``
        log_dir: Directory for log files, defaults to ``config.LOG_DIR``
    """
    level_name = (level or config.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    log_to_file = config.LOG_TO_FILE if log_to_file is None else log_to_file
    log_dir = log_dir or config.LOG_DIR

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    if log_level == logging.DEBUG:
        console_formatter = ColoredFormatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
            "[%(filename)s:%(lineno)d]",
            datefmt="%H:%M:%S",
        )
    else:
        console_formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)

        file_formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "prono.log"), maxBytes=10 * 1024 * 1024, backupCount=5  # 10MB
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "errors.log"), maxBytes=5 * 1024 * 1024, backupCount=3  # 5MB
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
            "[%(pathname)s:%(lineno)d]",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root_logger.addHandler(error_handler)

        # Scheduler log file for background jobs
        scheduler_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "scheduler.log"), maxBytes=5 * 1024 * 1024, backupCount=3  # 5MB
        )
        scheduler_handler.setLevel(logging.INFO)
        scheduler_handler.setFormatter(file_formatter)
        logging.getLogger("prono.services.scheduler").addHandler(scheduler_handler)

    # Configure third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured - Level: {logging.getLevelName(log_level)}"
    )
