"""Configuration settings for appbuilder_mesh.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.

These are settings of the tool itself (paths, budgets, timeouts). The
App Builder application configuration consumed by the build lives in
appbuilder_mesh.appconfig.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tool settings.

    Settings are loaded from environment variables with the AIO_MESH_ prefix.
    CLI flags can override these at runtime. Relative paths are resolved
    against project_dir.
    """

    model_config = SettingsConfigDict(
        env_prefix="AIO_MESH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    project_dir: Path = Field(
        default_factory=Path.cwd,
        description="Root of the App Builder project",
    )
    config_dir: Path = Field(
        default=Path("config"),
        description="Directory holding base.yaml and environments/*.yaml",
    )
    mesh_source: Path = Field(
        default=Path("mesh.config.yaml"),
        description="Mesh source file (YAML or JSON)",
    )
    mesh_output: Path = Field(
        default=Path("mesh.json"),
        description="Compiled mesh configuration consumed by aio",
    )
    resolver_template: Path = Field(
        default=Path("mesh-resolvers.template.js"),
        description="Resolver template file",
    )
    resolver_output: Path = Field(
        default=Path("mesh-resolvers.js"),
        description="Generated resolver artifact",
    )
    frontend_config_dir: Path = Field(
        default=Path("web-src/src/config/generated"),
        description="Output directory for generated frontend configuration",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    aio_command: str = Field(
        default="aio",
        description="Adobe I/O CLI executable",
    )

    # Deployment budgets
    max_submit_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum mesh update submissions per deployment",
    )
    max_poll_attempts: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Maximum status checks per submission",
    )
    poll_interval_staging: float = Field(
        default=45,
        ge=0,
        description="Seconds between status checks (staging)",
    )
    poll_interval_production: float = Field(
        default=60,
        ge=0,
        description="Seconds between status checks (production)",
    )
    poll_error_threshold: int = Field(
        default=2,
        ge=1,
        description="Trailing consecutive status check errors that fail polling",
    )
    deploy_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Wall-clock limit for polling one submission (seconds)",
    )

    # Timeouts (in seconds)
    submit_timeout: int = Field(
        default=600,
        ge=10,
        description="Timeout for the mesh update command",
    )
    status_timeout: int = Field(
        default=120,
        ge=10,
        description="Timeout for the mesh status command",
    )

    # Status text keywords (matched case-insensitively)
    status_success_keywords: list[str] = Field(
        default_factory=lambda: ["success"],
    )
    status_failure_keywords: list[str] = Field(
        default_factory=lambda: ["error", "failed"],
    )
    status_provisioning_keywords: list[str] = Field(
        default_factory=lambda: [
            "provisioning",
            "being provisioned",
            "pending",
            "building",
            "in progress",
        ],
    )

    def resolve(self, path: Path) -> Path:
        """Resolve a configured path against the project directory."""
        if path.is_absolute():
            return path
        return self.project_dir / path

    def poll_interval_for(self, environment: str) -> float:
        """Return the status poll interval for an environment."""
        if environment == "production":
            return self.poll_interval_production
        return self.poll_interval_staging


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
