"""Service configuration from environment variables and an optional YAML file.

Precedence (lowest to highest):
1. Dataclass defaults
2. YAML file (``--config`` / ``TOPOLOGY_CONFIG``): top-level keys, then the
   section named after the service (``api:`` or ``processor:``)
3. Environment variables (``KEY_VAULT_URL``, ``STORAGE_ACCOUNT_NAME``, ...)

Environment variables ARE supported inside the YAML file using ${VAR_NAME}
and ${VAR_NAME:-default} syntax.

Missing connection settings are not an error at load time. The route that
needs a setting raises ConfigurationError naming the environment variable,
and ``validate_config`` lists what is missing for startup diagnostics.
"""

import logging
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from core.auth.credentials import AUTH_MODES, MANAGEMENT_RESOURCE
from core.errors.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "TOPOLOGY_CONFIG"

DEFAULT_PORTS = {"api": 8080, "processor": 7071}

ERROR_DETAIL_MODES = ("verbatim", "sanitized")


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass
class ServiceConfig:
    """Settings shared by the public API and the private processor."""

    # =========================================================================
    # EXTERNAL SERVICES
    # =========================================================================
    key_vault_url: Optional[str] = None
    storage_account_name: Optional[str] = None
    sql_server: Optional[str] = None
    sql_database: Optional[str] = None
    sql_driver: str = "ODBC Driver 18 for SQL Server"
    function_app_url: Optional[str] = None
    peer_audience: str = MANAGEMENT_RESOURCE
    probe_secret_name: str = "storage-account-name"
    request_timeout_seconds: int = 30

    # =========================================================================
    # SERVER
    # =========================================================================
    port: int = 8080
    environment: str = "development"

    # =========================================================================
    # IDENTITY
    # =========================================================================
    auth_mode: Optional[str] = None
    managed_identity_client_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    tenant_id: Optional[str] = None
    token_refresh_margin_seconds: int = 300

    # =========================================================================
    # ERRORS & LOGGING
    # =========================================================================
    error_detail: str = "verbatim"
    log_level: str = "INFO"
    log_json: bool = True
    log_to_stdout: bool = True
    log_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if self.auth_mode is not None and self.auth_mode not in AUTH_MODES:
            raise ConfigurationError(
                ENV_NAMES["auth_mode"],
                f"AZURE_AUTH_MODE must be one of: {', '.join(AUTH_MODES)} (got '{self.auth_mode}')",
            )
        if self.error_detail not in ERROR_DETAIL_MODES:
            raise ConfigurationError(
                ENV_NAMES["error_detail"],
                f"ERROR_DETAIL must be one of: {', '.join(ERROR_DETAIL_MODES)} (got '{self.error_detail}')",
            )
        if self.token_refresh_margin_seconds < 0:
            raise ConfigurationError(
                ENV_NAMES["token_refresh_margin_seconds"],
                "TOKEN_REFRESH_MARGIN_SECONDS must not be negative",
            )

    @property
    def sanitize_errors(self) -> bool:
        return self.error_detail == "sanitized"

    def require(self, name: str) -> Any:
        """
        Return a setting that a route cannot work without.

        Raises:
            ConfigurationError: naming the environment variable when unset
        """
        value = getattr(self, name)
        if value in (None, ""):
            raise ConfigurationError(ENV_NAMES.get(name, name.upper()))
        return value


# Field name -> environment variable
ENV_NAMES: Dict[str, str] = {
    "key_vault_url": "KEY_VAULT_URL",
    "storage_account_name": "STORAGE_ACCOUNT_NAME",
    "sql_server": "SQL_SERVER",
    "sql_database": "SQL_DATABASE",
    "sql_driver": "SQL_DRIVER",
    "function_app_url": "FUNCTION_APP_URL",
    "peer_audience": "FUNCTION_APP_AUDIENCE",
    "probe_secret_name": "PROBE_SECRET_NAME",
    "request_timeout_seconds": "REQUEST_TIMEOUT_SECONDS",
    "port": "PORT",
    "environment": "ENVIRONMENT",
    "auth_mode": "AZURE_AUTH_MODE",
    "managed_identity_client_id": "AZURE_MANAGED_IDENTITY_CLIENT_ID",
    "client_id": "AZURE_CLIENT_ID",
    "client_secret": "AZURE_CLIENT_SECRET",
    "tenant_id": "AZURE_TENANT_ID",
    "token_refresh_margin_seconds": "TOKEN_REFRESH_MARGIN_SECONDS",
    "error_detail": "ERROR_DETAIL",
    "log_level": "LOG_LEVEL",
    "log_json": "LOG_JSON",
    "log_to_stdout": "LOG_TO_STDOUT",
    "log_dir": "LOG_DIR",
}

_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "request_timeout_seconds": int,
    "port": int,
    "token_refresh_margin_seconds": int,
    "log_json": _parse_bool,
    "log_to_stdout": _parse_bool,
    "key_vault_url": _parse_optional_str,
    "storage_account_name": _parse_optional_str,
    "sql_server": _parse_optional_str,
    "sql_database": _parse_optional_str,
    "function_app_url": _parse_optional_str,
    "auth_mode": _parse_optional_str,
    "managed_identity_client_id": _parse_optional_str,
    "client_id": _parse_optional_str,
    "client_secret": _parse_optional_str,
    "tenant_id": _parse_optional_str,
    "log_dir": _parse_optional_str,
}

# Settings each service needs for its routes
REQUIRED_SETTINGS: Dict[str, List[str]] = {
    "api": [
        "key_vault_url",
        "storage_account_name",
        "sql_server",
        "sql_database",
        "function_app_url",
    ],
    "processor": ["key_vault_url", "storage_account_name"],
}


def _parse_value(name: str, value: Any) -> Any:
    parser = _PARSERS.get(name, str)
    try:
        return parser(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            ENV_NAMES[name], f"Invalid value for {ENV_NAMES[name]}: {value!r}", cause=e
        ) from e


def _file_values(path: Optional[Path], service: str) -> Dict[str, Any]:
    if path is None:
        return {}

    raw = _expand_env_vars(load_yaml(path))
    if not isinstance(raw, dict):
        raise ConfigurationError(CONFIG_PATH_ENV, f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(ServiceConfig)}
    values = {k: v for k, v in raw.items() if k in known}
    section = raw.get(service) or {}
    values.update({k: v for k, v in section.items() if k in known})

    unknown = sorted(k for k in raw if k not in known and k not in DEFAULT_PORTS)
    if unknown:
        logger.warning(f"Ignoring unknown config keys in {path}: {', '.join(unknown)}")
    return values


def load_config(
    service: str = "api",
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ServiceConfig:
    """Load configuration for ``service`` ("api" or "processor").

    Args:
        service: Which service is starting; selects the default port and
            the YAML section applied over the top-level keys
        config_path: Optional YAML file; defaults to $TOPOLOGY_CONFIG if set
        overrides: Values applied last (e.g. from command line flags)

    Returns:
        ServiceConfig instance

    Raises:
        ConfigurationError: If a value cannot be parsed or is out of range
    """
    if config_path is None and os.getenv(CONFIG_PATH_ENV):
        config_path = Path(os.environ[CONFIG_PATH_ENV])

    values: Dict[str, Any] = {"port": DEFAULT_PORTS.get(service, 8080)}
    values.update(_file_values(config_path, service))

    for name, env_name in ENV_NAMES.items():
        env_value = os.getenv(env_name)
        if env_value is not None and env_value != "":
            values[name] = env_value

    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    parsed = {name: _parse_value(name, value) for name, value in values.items()}
    return ServiceConfig(**parsed)


def validate_config(config: ServiceConfig, service: str = "api") -> List[str]:
    """Environment variable names of required settings that are unset."""
    return [
        ENV_NAMES[name]
        for name in REQUIRED_SETTINGS.get(service, [])
        if getattr(config, name) in (None, "")
    ]
