"""Logging setup for XtreamTV with file and console output"""

import logging
import logging.handlers
import sys
from pathlib import Path

from xtreamtv.config import LoggingConfig


def setup_logging(
    log_level: str = "INFO",
    log_file_name: str | None = "logs/xtreamtv.log",
    log_to_console: bool = True,
    log_to_file: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    log_format: str | None = None,
) -> logging.Logger:
    """
    Set up logging for the XtreamTV application.

    This configures logging to write to:
    - Console (stderr, so stdout stays machine-readable for the CLI)
    - File with rotation

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file_name: Path to log file (absolute or relative)
        log_to_console: Whether to log to console
        log_to_file: Whether to log to file
        max_bytes: Maximum size of log file before rotation (default 10MB)
        backup_count: Number of backup files to keep
        log_format: Custom log format string

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear any existing handlers to avoid duplicates
    root_logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        log_format or "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
    )

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    log_file_path: Path | None = None
    if log_to_file and log_file_name:
        log_file_path = Path(log_file_name)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO, which would leak credentials in query strings
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    root_logger.debug(
        f"XtreamTV logging initialized - Level: {log_level}, "
        f"file: {log_file_path or 'disabled'}, "
        f"console: {'enabled' if log_to_console else 'disabled'}"
    )
    return root_logger


def setup_logging_from_config(config: LoggingConfig) -> logging.Logger:
    """Apply a ``logging`` configuration section."""
    return setup_logging(
        log_level=config.level,
        log_file_name=config.file,
        log_to_console=config.to_console,
        log_to_file=config.to_file,
        max_bytes=config.max_bytes,
        backup_count=config.backup_count,
        log_format=config.format,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the logger (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
