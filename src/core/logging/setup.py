"""Logging setup and configuration."""

import io
import logging
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

# Default settings
DEFAULT_LOG_DIR = Path("logs")
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_ROTATION_INTERVAL = 1
DEFAULT_BACKUP_COUNT = 7
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "azure.core.pipeline.policies.http_logging_policy",
    "azure.identity",
    "azure.identity.aio",
    "azure.storage",
    "azure.keyvault",
    "urllib3",
    "aiohttp.access",
]


def get_log_file_path(log_dir: Path, service: str) -> Path:
    """
    Build log file path with a per-service, per-date subfolder.

    Structure: {log_dir}/{service}/{YYYY-MM-DD}/{service}_{HHMM}.log

    Example:
        logs/container-app-api/2026-01-05/container-app-api_1430.log
    """
    now = datetime.now()
    filename = f"{service}_{now.strftime('%H%M')}.log"
    return log_dir / service / now.strftime("%Y-%m-%d") / filename


def setup_logging(
    service: str,
    level: int | str = DEFAULT_CONSOLE_LEVEL,
    json_format: bool = True,
    log_to_stdout: bool = True,
    log_dir: Path | None = None,
    rotation_when: str = DEFAULT_ROTATION_WHEN,
    rotation_interval: int = DEFAULT_ROTATION_INTERVAL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
) -> logging.Logger:
    """
    Configure root logging for a service process.

    Container deployments (``log_to_stdout=True``) write a single stream to
    stdout, JSON-formatted when ``json_format`` is set so the platform log
    collector can index the structured fields. Local runs can instead keep a
    human-readable console and write JSON to a time-rotated file.

    Args:
        service: Service name, injected into every record via log context
        level: Console level (int or level name)
        json_format: Emit JSON instead of the console format
        log_to_stdout: Log only to stdout, skipping file handlers
        log_dir: Directory for log files when file logging is enabled
        rotation_when: When to rotate log files ('midnight', 'H', ...)
        rotation_interval: Interval for rotation
        backup_count: Number of rotated files to keep
        suppress_noisy: Quiet down Azure SDK and HTTP client loggers

    Returns:
        Logger named after the service
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = DEFAULT_CONSOLE_LEVEL

    set_log_context(service=service)

    if sys.platform == "win32":
        safe_stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        console_handler = logging.StreamHandler(safe_stdout)
    else:
        console_handler = logging.StreamHandler(sys.stdout)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()

    log_file: Path | None = None
    if log_to_stdout:
        console_handler.setLevel(level)
        console_handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
        root_logger.addHandler(console_handler)
    else:
        console_handler.setLevel(level)
        console_handler.setFormatter(ConsoleFormatter())

        log_file = get_log_file_path(log_dir or DEFAULT_LOG_DIR, service)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        if json_format:
            file_formatter = JSONFormatter()
        else:
            file_formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )

        file_handler = TimedRotatingFileHandler(
            log_file,
            when=rotation_when,
            interval=rotation_interval,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(DEFAULT_FILE_LEVEL)
        file_handler.setFormatter(file_formatter)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(service)
    if log_file is None:
        logger.debug("Logging initialized: stdout-only mode")
    else:
        logger.debug(f"Logging initialized: file={log_file}, json={json_format}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
