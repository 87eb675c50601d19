"""Configuration loading for the topology services.

Main Functions
--------------
    - load_config(): Build a ServiceConfig from YAML (optional) and environment
    - validate_config(): List required settings that are missing

Usage Examples
--------------

    >>> from config import load_config, validate_config
    >>> config = load_config(service="api")
    >>> missing = validate_config(config, service="api")
    >>> config.require("function_app_url")  # raises ConfigurationError if unset
"""

from config.config import (
    CONFIG_PATH_ENV,
    DEFAULT_PORTS,
    ENV_NAMES,
    REQUIRED_SETTINGS,
    ServiceConfig,
    load_config,
    validate_config,
)

__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_PORTS",
    "ENV_NAMES",
    "REQUIRED_SETTINGS",
    "ServiceConfig",
    "load_config",
    "validate_config",
]
