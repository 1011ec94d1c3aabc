"""Tests for configuration loading."""

import pytest
import yaml
from pydantic import ValidationError

from scim_migration.client.exceptions import ConfigurationError
from scim_migration.config import MigrationConfig, STSConfig, load_config_from_yaml


class TestLoadConfig:
    """YAML configuration loading."""

    def test_loads_valid_file(self, config_file, key_file):
        config = load_config_from_yaml(config_file)

        assert config.client_id == "migrator"
        assert config.sts.key_path == str(key_file)
        assert config.scim.url == "https://scim.example.com"
        assert config.performance.concurrency == 2
        assert config.performance.batch_size == 100
        assert config.logging.results_dir == "logs"

    def test_env_var_expansion(self, tmp_path, config_data, monkeypatch):
        monkeypatch.setenv("TEST_SCIM_CLIENT_ID", "from-env")
        config_data["client_id"] = "${TEST_SCIM_CLIENT_ID}"
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config_data))

        assert load_config_from_yaml(path).client_id == "from-env"

    def test_missing_env_var_raises(self, tmp_path, config_data, monkeypatch):
        monkeypatch.delenv("TEST_SCIM_UNSET", raising=False)
        config_data["client_id"] = "${TEST_SCIM_UNSET}"
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config_data))

        with pytest.raises(ConfigurationError, match="TEST_SCIM_UNSET"):
            load_config_from_yaml(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config_from_yaml(tmp_path / "nope.yaml")

    def test_empty_file_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        with pytest.raises(ConfigurationError, match="Empty"):
            load_config_from_yaml(path)

    def test_invalid_values_raise(self, tmp_path, config_data):
        config_data["performance"]["concurrency"] = 0
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config_data))

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config_from_yaml(path)

    def test_vault_key_requires_vault_section(self, tmp_path, config_data):
        config_data["sts"].pop("key_path")
        config_data["sts"]["vault_key_path"] = "scim/sts"
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config_data))

        with pytest.raises(ConfigurationError, match="vault section"):
            load_config_from_yaml(path)

    def test_vault_key_with_vault_section(self, config_data):
        config_data["sts"].pop("key_path")
        config_data["sts"]["vault_key_path"] = "scim/sts"
        config_data["vault"] = {
            "url": "https://vault.example.com",
            "role_id": "r",
            "secret_id": "s",
        }

        config = MigrationConfig(**config_data)

        assert config.vault.mount_point == "secret"


class TestSTSConfig:
    @pytest.mark.parametrize(
        "sources",
        [{}, {"key_path": "k.pem", "vault_key_path": "scim/sts"}],
    )
    def test_exactly_one_key_source(self, sources):
        with pytest.raises(ValidationError, match="exactly one"):
            STSConfig(url="https://sts.example.com", key_id="k", **sources)

    def test_url_must_have_scheme(self):
        with pytest.raises(ValidationError):
            STSConfig(url="sts.example.com", key_id="k", key_path="k.pem")


class TestFieldTypes:
    def test_log_level_case_insensitive(self, config_data):
        config_data["logging"] = {"level": "debug"}

        assert MigrationConfig(**config_data).logging.level == "DEBUG"

    @pytest.mark.parametrize("logging", [{"level": "VERBOSE"}, {"format": "xml"}])
    def test_unknown_logging_values_rejected(self, config_data, logging):
        config_data["logging"] = logging

        with pytest.raises(ValidationError):
            MigrationConfig(**config_data)

    def test_blank_entity_id_rejected(self, config_data):
        config_data["scim"]["global_entity_id"] = "  "

        with pytest.raises(ValidationError, match="blank"):
            MigrationConfig(**config_data)

    def test_trailing_slash_stripped(self, config_data):
        config_data["sts"]["url"] = "https://sts.example.com/"

        assert MigrationConfig(**config_data).sts.url == "https://sts.example.com"
