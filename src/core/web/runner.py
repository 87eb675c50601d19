"""Command line entry shared by ``python -m api`` and ``python -m processor``."""

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from aiohttp import web
from dotenv import load_dotenv

from config import DEFAULT_PORTS, ServiceConfig, load_config, validate_config
from core.errors.exceptions import ConfigurationError
from core.logging.setup import setup_logging

logger = logging.getLogger(__name__)


def parse_args(
    description: str,
    default_port: int,
    argv: Sequence[str] | None = None,
) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=description)

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help=f"Port to listen on (default: PORT env var or {default_port})",
    )

    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Interface to bind (default: 0.0.0.0)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional YAML config file (default: TOPOLOGY_CONFIG env var)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Write rotating JSON log files here instead of logging to stdout only",
    )

    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        default=None,
        help="Send all log output to stdout only, skipping file handlers. "
        "Can also be set via LOG_TO_STDOUT environment variable.",
    )

    return parser.parse_args(argv)


def run_service(
    service: str,
    service_name: str,
    app_factory: Callable[[ServiceConfig], web.Application],
    description: str,
    argv: Sequence[str] | None = None,
) -> None:
    """Load .env and config, set up logging, then serve until SIGINT/SIGTERM."""
    load_dotenv()

    args = parse_args(description, DEFAULT_PORTS[service], argv)

    overrides = {
        "port": args.port,
        "log_level": args.log_level,
        "log_dir": args.log_dir,
        "log_to_stdout": args.log_to_stdout,
    }
    # A log directory implies file logging unless stdout was asked for explicitly
    if args.log_dir and args.log_to_stdout is None:
        overrides["log_to_stdout"] = False

    try:
        config = load_config(service=service, config_path=args.config, overrides=overrides)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(
        service_name,
        level=config.log_level,
        json_format=config.log_json,
        log_to_stdout=config.log_to_stdout,
        log_dir=Path(config.log_dir) if config.log_dir else None,
    )

    missing = validate_config(config, service=service)
    if missing:
        logger.warning(
            "Settings not configured; routes that need them will return 500",
            extra={"missing_settings": missing},
        )

    app = app_factory(config)
    logger.info(
        f"Starting {service_name}",
        extra={"port": config.port, "environment": config.environment},
    )
    web.run_app(app, host=args.host, port=config.port, print=None)
    logger.info(f"{service_name} stopped")
