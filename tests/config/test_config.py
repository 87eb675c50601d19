import os
from pathlib import Path
from unittest.mock import patch

import pytest

from config import ServiceConfig, load_config, validate_config
from config.config import _expand_env_vars, load_yaml
from core.auth.credentials import MANAGEMENT_RESOURCE
from core.errors.exceptions import ConfigurationError

# =========================================================================
# load_yaml
# =========================================================================


class TestLoadYaml:
    def test_returns_empty_dict_for_nonexistent_file(self):
        result = load_yaml(Path("/nonexistent/path/config.yaml"))
        assert result == {}

    def test_loads_yaml_file(self, tmp_path):
        config_file = tmp_path / "test.yaml"
        config_file.write_text("key: value\nnested:\n  a: 1\n")
        result = load_yaml(config_file)
        assert result == {"key": "value", "nested": {"a": 1}}

    def test_returns_empty_dict_for_empty_file(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        result = load_yaml(config_file)
        assert result == {}


# =========================================================================
# _expand_env_vars
# =========================================================================


class TestExpandEnvVars:
    def test_expands_simple_variable(self):
        with patch.dict(os.environ, {"MY_VAR": "hello"}):
            assert _expand_env_vars("${MY_VAR}") == "hello"

    def test_expands_variable_with_default(self):
        with patch.dict(os.environ, {}, clear=True):
            assert _expand_env_vars("${MY_VAR:-fallback}") == "fallback"

    def test_uses_env_value_over_default(self):
        with patch.dict(os.environ, {"MY_VAR": "real_value"}):
            assert _expand_env_vars("${MY_VAR:-fallback}") == "real_value"

    def test_leaves_unset_variable_without_default(self):
        with patch.dict(os.environ, {}, clear=True):
            assert _expand_env_vars("${MISSING}") == "${MISSING}"

    def test_expands_in_dict_and_list(self):
        with patch.dict(os.environ, {"HOST": "kv"}):
            assert _expand_env_vars({"a": ["https://${HOST}.vault.azure.net"]}) == {
                "a": ["https://kv.vault.azure.net"]
            }

    def test_non_strings_unchanged(self):
        assert _expand_env_vars(42) == 42


# =========================================================================
# ServiceConfig
# =========================================================================


class TestServiceConfig:
    def test_defaults(self):
        config = ServiceConfig()
        assert config.key_vault_url is None
        assert config.peer_audience == MANAGEMENT_RESOURCE
        assert config.probe_secret_name == "storage-account-name"
        assert config.token_refresh_margin_seconds == 300
        assert config.error_detail == "verbatim"
        assert config.sanitize_errors is False

    def test_sanitized_error_detail(self):
        assert ServiceConfig(error_detail="sanitized").sanitize_errors is True

    def test_rejects_unknown_error_detail(self):
        with pytest.raises(ConfigurationError, match="ERROR_DETAIL"):
            ServiceConfig(error_detail="partial")

    def test_rejects_unknown_auth_mode(self):
        with pytest.raises(ConfigurationError, match="AZURE_AUTH_MODE"):
            ServiceConfig(auth_mode="password")

    def test_rejects_negative_refresh_margin(self):
        with pytest.raises(ConfigurationError):
            ServiceConfig(token_refresh_margin_seconds=-1)

    def test_require_returns_value(self):
        assert ServiceConfig(sql_server="sql.example").require("sql_server") == "sql.example"

    def test_require_names_environment_variable(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ServiceConfig().require("function_app_url")
        assert str(exc_info.value) == "FUNCTION_APP_URL not configured"
        assert exc_info.value.setting == "FUNCTION_APP_URL"


# =========================================================================
# load_config
# =========================================================================


class TestLoadConfig:
    def test_service_default_ports(self):
        assert load_config(service="api").port == 8080
        assert load_config(service="processor").port == 7071

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("KEY_VAULT_URL", "https://kv.vault.azure.net/")
        monkeypatch.setenv("STORAGE_ACCOUNT_NAME", "stdemo")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("LOG_JSON", "false")

        config = load_config()

        assert config.key_vault_url == "https://kv.vault.azure.net/"
        assert config.storage_account_name == "stdemo"
        assert config.port == 9000
        assert config.log_json is False

    def test_empty_environment_value_ignored(self, monkeypatch):
        monkeypatch.setenv("SQL_SERVER", "")
        assert load_config().sql_server is None

    def test_invalid_integer(self, monkeypatch):
        monkeypatch.setenv("PORT", "eighty")
        with pytest.raises(ConfigurationError, match="PORT"):
            load_config()

    def test_yaml_file_with_service_section(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "storage_account_name: stshared\n"
            "port: 9999\n"
            "api:\n"
            "  port: 8081\n"
            "processor:\n"
            "  port: 7072\n"
        )

        api = load_config(service="api", config_path=config_file)
        processor = load_config(service="processor", config_path=config_file)

        assert api.storage_account_name == "stshared"
        assert api.port == 8081
        assert processor.port == 7072

    def test_environment_overrides_yaml(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("sql_database: fromfile\n")
        monkeypatch.setenv("SQL_DATABASE", "fromenv")

        assert load_config(config_path=config_file).sql_database == "fromenv"

    def test_yaml_env_expansion(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("key_vault_url: https://${VAULT_NAME:-kv-default}.vault.azure.net/\n")

        assert load_config(config_path=config_file).key_vault_url == "https://kv-default.vault.azure.net/"
        monkeypatch.setenv("VAULT_NAME", "kv-prod")
        assert load_config(config_path=config_file).key_vault_url == "https://kv-prod.vault.azure.net/"

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("sql_server: sql-from-file\n")
        monkeypatch.setenv("TOPOLOGY_CONFIG", str(config_file))

        assert load_config().sql_server == "sql-from-file"

    def test_yaml_must_be_mapping(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_config(config_path=config_file)

    def test_overrides_win_and_none_ignored(self, monkeypatch):
        monkeypatch.setenv("PORT", "9000")
        config = load_config(overrides={"port": 1234, "log_level": None})
        assert config.port == 1234
        assert config.log_level == "INFO"


# =========================================================================
# validate_config
# =========================================================================


class TestValidateConfig:
    def test_lists_missing_api_settings(self):
        missing = validate_config(ServiceConfig(storage_account_name="st"), service="api")
        assert missing == ["KEY_VAULT_URL", "SQL_SERVER", "SQL_DATABASE", "FUNCTION_APP_URL"]

    def test_processor_needs_vault_and_storage_only(self, full_config):
        assert validate_config(full_config, service="processor") == []
        assert validate_config(ServiceConfig(), service="processor") == [
            "KEY_VAULT_URL",
            "STORAGE_ACCOUNT_NAME",
        ]
