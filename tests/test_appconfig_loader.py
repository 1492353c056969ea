"""Tests for application configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from appbuilder_mesh.appconfig import (
    AppConfigSchema,
    ConfigLoadError,
    ProjectSecrets,
    deep_merge,
    load_config,
)
from appbuilder_mesh.appconfig.loader import load_yaml_layer

NO_SECRETS = ProjectSecrets(commerce_base_url=None, mesh_api_key=None)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Create a layered configuration directory."""
    root = tmp_path / "config"
    (root / "environments").mkdir(parents=True)
    (root / "base.yaml").write_text(
        """
commerce:
  base_url: https://staging.example.com/
  api_version: V1
mesh:
  category_batch_threshold: 20
products:
  max_categories_display: 10
"""
    )
    (root / "environments" / "production.yaml").write_text(
        """
commerce:
  base_url: https://shop.example.com
mesh:
  category_batch_threshold: 40
"""
    )
    return root


class TestDeepMerge:
    """Test deep_merge function."""

    def test_nested_override(self) -> None:
        """Nested mappings should merge key by key."""
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        merged = deep_merge(base, {"a": {"c": 20}})
        assert merged == {"a": {"b": 1, "c": 20}, "d": 3}

    def test_does_not_mutate_inputs(self) -> None:
        """deep_merge should leave both inputs untouched."""
        base = {"a": {"b": 1}}
        override = {"a": {"b": 2}}
        deep_merge(base, override)
        assert base == {"a": {"b": 1}}
        assert override == {"a": {"b": 2}}

    def test_non_mapping_replaces(self) -> None:
        """Lists and scalars should replace rather than merge."""
        merged = deep_merge({"a": [1, 2]}, {"a": [3]})
        assert merged == {"a": [3]}


class TestLoadYamlLayer:
    """Test load_yaml_layer function."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        """A missing layer should be empty."""
        assert load_yaml_layer(tmp_path / "absent.yaml") == {}

    def test_empty_file_is_empty(self, tmp_path: Path) -> None:
        """An empty file should be an empty layer."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_layer(path) == {}

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        """Malformed YAML should raise ConfigLoadError."""
        path = tmp_path / "bad.yaml"
        path.write_text("commerce: [unclosed")
        with pytest.raises(ConfigLoadError):
            load_yaml_layer(path)

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        """A YAML list at top level should raise ConfigLoadError."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigLoadError, match="Expected a YAML mapping"):
            load_yaml_layer(path)


class TestLoadConfig:
    """Test load_config function."""

    def test_staging_uses_base(self, config_dir: Path) -> None:
        """Staging should use the base layer."""
        config = load_config(config_dir=config_dir, secrets=NO_SECRETS)
        assert isinstance(config, AppConfigSchema)
        assert config.environment == "staging"
        assert config.commerce.base_url == "https://staging.example.com"
        assert config.mesh.category_batch_threshold == 20

    def test_production_layer_overrides(self, config_dir: Path) -> None:
        """The production layer should override base values."""
        config = load_config(
            is_production=True, config_dir=config_dir, secrets=NO_SECRETS
        )
        assert config.environment == "production"
        assert config.is_production
        assert config.commerce.base_url == "https://shop.example.com"
        assert config.mesh.category_batch_threshold == 40
        assert config.commerce.api_version == "V1"

    def test_secrets_override_files(self, config_dir: Path) -> None:
        """Secrets should override file layers."""
        secrets = ProjectSecrets(
            commerce_base_url="https://secret.example.com", mesh_api_key="key-1"
        )
        config = load_config(config_dir=config_dir, secrets=secrets)
        assert config.commerce.base_url == "https://secret.example.com"
        assert config.mesh.api_key == "key-1"

    def test_secrets_from_environment(self, config_dir: Path) -> None:
        """ProjectSecrets should read COMMERCE_BASE_URL and MESH_API_KEY."""
        with patch.dict(
            os.environ,
            {"COMMERCE_BASE_URL": "https://env.example.com", "MESH_API_KEY": "k"},
        ):
            config = load_config(config_dir=config_dir)
        assert config.commerce.base_url == "https://env.example.com"
        assert config.mesh.api_key == "k"

    def test_overrides_win(self, config_dir: Path) -> None:
        """Caller overrides should beat every other layer."""
        config = load_config(
            overrides={"mesh": {"category_batch_threshold": 5}},
            config_dir=config_dir,
            secrets=NO_SECRETS,
        )
        assert config.mesh.category_batch_threshold == 5

    def test_missing_commerce_block(self, tmp_path: Path) -> None:
        """No configuration files at all should report the commerce block."""
        with pytest.raises(ConfigLoadError) as exc_info:
            load_config(config_dir=tmp_path, secrets=NO_SECRETS)
        assert exc_info.value.missing == ["commerce"]

    def test_missing_nested_base_url(self, tmp_path: Path) -> None:
        """A commerce block without base_url should name the env var."""
        (tmp_path / "base.yaml").write_text("commerce:\n  api_version: V1\n")
        with pytest.raises(ConfigLoadError) as exc_info:
            load_config(config_dir=tmp_path, secrets=NO_SECRETS)
        assert exc_info.value.missing == ["commerce.base_url"]
        assert "COMMERCE_BASE_URL" in str(exc_info.value)
        assert exc_info.value.code == "config_load_error"

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        """Schema violations should raise ConfigLoadError."""
        (tmp_path / "base.yaml").write_text(
            "commerce:\n  base_url: ftp://example.com\n"
        )
        with pytest.raises(ConfigLoadError, match="Invalid staging configuration"):
            load_config(config_dir=tmp_path, secrets=NO_SECRETS)

    def test_unknown_key_rejected(self, config_dir: Path) -> None:
        """Unknown configuration keys should be rejected."""
        with pytest.raises(ConfigLoadError):
            load_config(
                overrides={"mesh": {"unknown": 1}},
                config_dir=config_dir,
                secrets=NO_SECRETS,
            )
