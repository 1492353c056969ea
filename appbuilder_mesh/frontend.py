"""Frontend configuration generation.

Writes the subset of the application configuration the web frontend
needs, both as config.json and as an ES module (config.js). Secrets are
never included.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from appbuilder_mesh.appconfig.schema import AppConfigSchema
from appbuilder_mesh.mesh.artifacts import render_json, write_text_atomic

logger = logging.getLogger(__name__)

FRONTEND_JSON_NAME = "config.json"
FRONTEND_MODULE_NAME = "config.js"
FRONTEND_MODULE_HEADER = "// Auto-generated frontend configuration\n"


def frontend_config(config: AppConfigSchema) -> dict[str, Any]:
    """Select the frontend-safe part of the configuration."""
    runtime = config.runtime
    return {
        "environment": config.environment,
        "api": {
            "baseUrl": config.commerce.base_url,
            "version": config.commerce.api_version,
        },
        "storage": {"provider": config.storage.provider},
        "mesh": {"endpoint": config.mesh.endpoint},
        "performance": {"timeout": config.performance.timeout_ms},
        "runtime": {
            "package": runtime.package,
            "urlPrefix": runtime.url_prefix,
            "actions": {action: runtime.action_url(action) for action in runtime.actions},
        },
    }


def render_module(document: dict[str, Any]) -> str:
    """Render the configuration as an ES module."""
    return (
        f"{FRONTEND_MODULE_HEADER}"
        f"export const config = {json.dumps(document, indent=2)};\n"
    )


def generate_frontend_config(config: AppConfigSchema, output_dir: Path) -> list[Path]:
    """Write config.json and config.js for the frontend.

    Args:
        config: Effective application configuration.
        output_dir: Directory to write into (created if missing).

    Returns:
        Paths of the written files.

    Raises:
        OSError: If the files cannot be written.
    """
    document = frontend_config(config)
    output_dir.mkdir(parents=True, exist_ok=True)

    json_path = output_dir / FRONTEND_JSON_NAME
    module_path = output_dir / FRONTEND_MODULE_NAME
    write_text_atomic(json_path, render_json(document))
    write_text_atomic(module_path, render_module(document))
    logger.info("Generated frontend configuration in %s", output_dir)
    return [json_path, module_path]


__all__ = [
    "FRONTEND_JSON_NAME",
    "FRONTEND_MODULE_NAME",
    "frontend_config",
    "generate_frontend_config",
    "render_module",
]
