"""
Tests for SoftDelete Toolkit configuration.
"""

import json

import pytest
from pydantic import ValidationError

from softdelete_toolkit.config import (
    SoftDeleteConfig,
    configure,
    get_config,
    parse_sentinel,
    reset_config,
    set_config,
)


class TestParseSentinel:
    """Test textual sentinel values."""

    @pytest.mark.parametrize("text", ["null", "None", "NIL", "", "  null "])
    def test_null_words(self, text):
        assert parse_sentinel(text) is None

    def test_booleans(self):
        assert parse_sentinel("true") is True
        assert parse_sentinel("False") is False

    def test_other_text_is_kept(self):
        assert parse_sentinel("active") == "active"
        assert parse_sentinel(None) is None


class TestSoftDeleteConfig:
    """Test configuration defaults and validation."""

    def test_defaults(self):
        """Test default configuration values."""
        config = SoftDeleteConfig()

        assert config.default_column == "deleted_at"
        assert config.default_sentinel_value is None
        assert config.null_is_deleted is True
        assert config.install_default_scope is True
        assert config.timestamp_columns == ["updated_at", "updated_on"]
        assert config.use_utc is True
        assert config.log_transitions is True

    def test_invalid_column(self):
        """Test a column name must be an identifier."""
        with pytest.raises(ValidationError):
            SoftDeleteConfig(default_column="deleted at")

    def test_column_is_stripped(self):
        config = SoftDeleteConfig(default_column=" archived_at ")
        assert config.default_column == "archived_at"

    def test_timestamp_columns_deduplicated(self):
        """Test timestamp columns are stripped and de-duplicated."""
        config = SoftDeleteConfig(
            timestamp_columns=["modified_at", " modified_at", "", "touched_at"]
        )
        assert config.timestamp_columns == ["modified_at", "touched_at"]

    def test_to_dict(self):
        data = SoftDeleteConfig(default_column="archived_at").to_dict()
        assert data["default_column"] == "archived_at"
        assert "timestamp_columns" in data


class TestConfigSources:
    """Test loading configuration from the environment and files."""

    def test_from_env(self, monkeypatch):
        """Test environment variables with the SOFTDELETE_ prefix."""
        monkeypatch.setenv("SOFTDELETE_DEFAULT_COLUMN", "removed_at")
        monkeypatch.setenv("SOFTDELETE_DEFAULT_SENTINEL_VALUE", "true")
        monkeypatch.setenv("SOFTDELETE_NULL_IS_DELETED", "no")
        monkeypatch.setenv("SOFTDELETE_TIMESTAMP_COLUMNS", "modified_at, touched_at")

        config = SoftDeleteConfig.from_env()

        assert config.default_column == "removed_at"
        assert config.default_sentinel_value is True
        assert config.null_is_deleted is False
        assert config.timestamp_columns == ["modified_at", "touched_at"]

    def test_from_env_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("APP_INSTALL_DEFAULT_SCOPE", "false")

        config = SoftDeleteConfig.from_env(prefix="APP_")

        assert config.install_default_scope is False

    def test_from_yaml_file(self, tmp_path):
        """Test loading a YAML file."""
        path = tmp_path / "softdelete.yaml"
        path.write_text("default_column: archived_at\ndefault_sentinel_value: active\n")

        config = SoftDeleteConfig.from_file(path)

        assert config.default_column == "archived_at"
        assert config.default_sentinel_value == "active"

    def test_from_json_file(self, tmp_path):
        """Test loading a JSON file."""
        path = tmp_path / "softdelete.json"
        path.write_text(json.dumps({"log_transitions": False}))

        config = SoftDeleteConfig.from_file(str(path))

        assert config.log_transitions is False

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert SoftDeleteConfig.from_file(path) == SoftDeleteConfig()

    def test_file_without_mapping(self, tmp_path):
        """Test a file holding a list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- deleted_at\n")

        with pytest.raises(ValueError) as exc:
            SoftDeleteConfig.from_file(path)
        assert "mapping" in str(exc.value)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SoftDeleteConfig.from_file(tmp_path / "missing.yaml")


class TestGlobalConfig:
    """Test the process-wide configuration."""

    def test_get_config_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SOFTDELETE_DEFAULT_COLUMN", "gone_at")
        reset_config()

        assert get_config().default_column == "gone_at"

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_set_config(self):
        config = SoftDeleteConfig(default_column="archived_at")
        set_config(config)

        assert get_config() is config

    def test_configure_updates_values(self):
        """Test configure keeps earlier settings."""
        configure(default_column="archived_at")
        config = configure(use_utc=False)

        assert config.default_column == "archived_at"
        assert config.use_utc is False
        assert get_config() is config

    def test_configure_validates(self):
        with pytest.raises(ValidationError):
            configure(default_column="1st")

    def test_reset_config(self):
        configure(default_column="archived_at")
        reset_config()

        assert get_config().default_column == "deleted_at"
