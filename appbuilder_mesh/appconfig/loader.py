"""Application configuration loading.

Configuration is layered, later layers winning:

1. config/base.yaml
2. config/environments/<environment>.yaml
3. Secrets from the environment or .env (COMMERCE_BASE_URL, MESH_API_KEY)
4. Caller overrides

The merged mapping is validated with AppConfigSchema. Any failure is
reported as ConfigLoadError so the build can abort with a single cause.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from appbuilder_mesh.appconfig.schema import AppConfigSchema

logger = logging.getLogger(__name__)

BASE_CONFIG_NAME = "base.yaml"
ENVIRONMENTS_DIR_NAME = "environments"

# Environment variables that configure required fields
REQUIRED_ENV_HINTS = {
    "commerce.base_url": "COMMERCE_BASE_URL",
    "mesh.api_key": "MESH_API_KEY",
}


class ConfigLoadError(Exception):
    """Raised when the application configuration cannot be loaded."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        code: str = "config_load_error",
    ) -> None:
        super().__init__(message)
        self.missing = missing or []
        self.code = code


class ProjectSecrets(BaseSettings):
    """Secrets read from the process environment or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    commerce_base_url: str | None = None
    mesh_api_key: str | None = None

    def as_overrides(self) -> dict[str, Any]:
        """Return the secrets as a nested config mapping."""
        overrides: dict[str, Any] = {}
        if self.commerce_base_url:
            overrides.setdefault("commerce", {})["base_url"] = self.commerce_base_url
        if self.mesh_api_key:
            overrides.setdefault("mesh", {})["api_key"] = self.mesh_api_key
        return overrides


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base.

    Nested mappings are merged; any other value in override replaces the
    value in base.

    Args:
        base: Base mapping (not modified).
        override: Mapping whose values take precedence.

    Returns:
        New merged mapping.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_yaml_layer(path: Path) -> dict[str, Any]:
    """Load one YAML configuration layer.

    A missing file is an empty layer.

    Raises:
        ConfigLoadError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        logger.debug("Config layer not found, skipping: %s", path)
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigLoadError(f"Failed to read config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"Expected a YAML mapping in {path}, got {type(data).__name__}"
        )
    return data


def _missing_fields(error: ValidationError) -> list[str]:
    """Return dotted paths of required fields absent from the input."""
    return [
        ".".join(str(part) for part in err["loc"])
        for err in error.errors()
        if err["type"] == "missing"
    ]


def load_config(
    overrides: dict[str, Any] | None = None,
    is_production: bool = False,
    config_dir: Path | None = None,
    secrets: ProjectSecrets | None = None,
) -> AppConfigSchema:
    """Load the effective application configuration for an environment.

    Args:
        overrides: Values applied on top of every other layer.
        is_production: Load the production environment layer.
        config_dir: Directory containing base.yaml and environments/.
        secrets: Secrets source; read from the environment if not given.

    Returns:
        Validated AppConfigSchema.

    Raises:
        ConfigLoadError: If a layer is unreadable or the result is invalid.
    """
    environment = "production" if is_production else "staging"
    config_dir = config_dir or Path("config")

    data = load_yaml_layer(config_dir / BASE_CONFIG_NAME)
    data = deep_merge(
        data, load_yaml_layer(config_dir / ENVIRONMENTS_DIR_NAME / f"{environment}.yaml")
    )

    if secrets is None:
        secrets = ProjectSecrets()
    data = deep_merge(data, secrets.as_overrides())
    if overrides:
        data = deep_merge(data, overrides)
    data["environment"] = environment

    try:
        config = AppConfigSchema.model_validate(data)
    except ValidationError as e:
        missing = _missing_fields(e)
        if missing:
            hints = [
                f"{path} (set {REQUIRED_ENV_HINTS[path]})"
                if path in REQUIRED_ENV_HINTS
                else path
                for path in missing
            ]
            message = f"Missing required {environment} configuration: {', '.join(hints)}"
        else:
            message = f"Invalid {environment} configuration: {e}"
        raise ConfigLoadError(message, missing=missing) from e

    logger.debug(
        "Loaded %s configuration (commerce: %s)", environment, config.commerce.base_url
    )
    return config


__all__ = [
    "ConfigLoadError",
    "ProjectSecrets",
    "deep_merge",
    "load_config",
    "load_yaml_layer",
]
