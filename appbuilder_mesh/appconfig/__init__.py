"""Application configuration module.

This module handles:
- Layered YAML configuration per environment
- Secrets from the environment or .env
- Validation of the merged configuration
"""

from appbuilder_mesh.appconfig.loader import (
    ConfigLoadError,
    ProjectSecrets,
    deep_merge,
    load_config,
)
from appbuilder_mesh.appconfig.schema import AppConfigSchema

__all__ = [
    "AppConfigSchema",
    "ConfigLoadError",
    "ProjectSecrets",
    "deep_merge",
    "load_config",
]
