"""Mesh build orchestration.

This module provides the high-level build API:
- build_mesh(): compile mesh.json and regenerate the resolver artifact
  only when its template or effective configuration changed

Steps:
1. Load the application configuration for the target environment
2. Extract the mesh configuration (URL rewrite, SDL normalization)
3. Digest the effective configuration (volatile fields excluded)
4. Digest the resolver template
5. Recover metadata from the existing resolver, if any
6. Ask the regeneration gate
7/8. Skip, or compile + embed metadata + write atomically

Unchanged inputs produce no file writes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from appbuilder_mesh.appconfig.loader import load_config
from appbuilder_mesh.appconfig.schema import AppConfigSchema
from appbuilder_mesh.config import Settings, get_settings
from appbuilder_mesh.mesh.artifacts import (
    read_artifact,
    write_json_if_changed,
    write_text_atomic,
)
from appbuilder_mesh.mesh.gate import decide
from appbuilder_mesh.mesh.hashing import (
    SerializationError,
    hash_canonical_object,
    hash_file,
)
from appbuilder_mesh.mesh.meshconfig import (
    MeshConfiguration,
    build_mesh_configuration,
    load_mesh_source,
)
from appbuilder_mesh.mesh.metadata import (
    METADATA_FORMAT_VERSION,
    GenerationMetadata,
    embed,
    extract,
)
from appbuilder_mesh.mesh.template import (
    compile_template,
    find_placeholders,
    template_variables,
)
from appbuilder_mesh.types import Environment

logger = logging.getLogger(__name__)

# Dotted paths ignored when digesting the effective configuration
VOLATILE_CONFIG_KEYS = ("meshConfig.timestamp",)

ConfigLoader = Callable[..., AppConfigSchema]


class TemplateMissingError(Exception):
    """Raised when the resolver template file does not exist."""

    def __init__(self, template_path: Path, code: str = "template_missing") -> None:
        super().__init__(f"Resolver template not found: {template_path}")
        self.template_path = template_path
        self.code = code


@dataclass
class BuildOptions:
    """Options for a mesh build.

    Attributes:
        force: Regenerate the resolver even if nothing changed.
        environment: Target environment.
    """

    force: bool = False
    environment: Environment = Environment.STAGING


@dataclass
class GenerationResult:
    """Result of a mesh build.

    Attributes:
        regenerated: Whether the resolver artifact was rewritten.
        reason: Gate reason for the decision.
        metadata: Metadata now embedded in the resolver.
        resolver_path: Resolver artifact path.
        mesh_json_path: Compiled mesh configuration path.
        mesh_json_written: Whether mesh.json was rewritten.
        unresolved_placeholders: Placeholders left in a fresh resolver.
    """

    regenerated: bool
    reason: str
    metadata: GenerationMetadata | None
    resolver_path: Path
    mesh_json_path: Path
    mesh_json_written: bool = False
    unresolved_placeholders: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether any build output was rewritten."""
        return self.regenerated or self.mesh_json_written

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "regenerated": self.regenerated,
            "reason": self.reason,
            "metadata": self.metadata.model_dump(mode="json") if self.metadata else None,
            "resolver_path": str(self.resolver_path),
            "mesh_json_path": str(self.mesh_json_path),
            "mesh_json_written": self.mesh_json_written,
            "unresolved_placeholders": self.unresolved_placeholders,
        }


def compute_config_digest(
    mesh_document: dict[str, Any],
    variables: dict[str, str],
) -> str:
    """Digest the effective configuration of a build.

    Covers both the compiled mesh document and the template variables,
    since either one changes the generated resolver.

    Args:
        mesh_document: The `{"meshConfig": ...}` document.
        variables: Resolver template variables.

    Returns:
        SHA-256 hex digest.
    """
    effective = {"meshConfig": mesh_document["meshConfig"], "variables": variables}
    return hash_canonical_object(effective, VOLATILE_CONFIG_KEYS)


def _template_digest(template_path: Path) -> str:
    if not template_path.is_file():
        raise TemplateMissingError(template_path)
    return hash_file(template_path)


def build_mesh(
    options: BuildOptions,
    settings: Settings | None = None,
    config: AppConfigSchema | None = None,
    config_loader: ConfigLoader = load_config,
    now: datetime | None = None,
) -> GenerationResult:
    """Build mesh.json and, when needed, the resolver artifact.

    Args:
        options: Build options.
        settings: Tool settings; loaded from environment if not provided.
        config: Preloaded application configuration.
        config_loader: Loader used when config is not provided.
        now: Generation timestamp override.

    Returns:
        GenerationResult describing what happened.

    Raises:
        ConfigLoadError: If the configuration or mesh source cannot be loaded.
        TemplateMissingError: If the resolver template does not exist.
        SerializationError: If the configuration cannot be digested or
            the type definitions cannot be printed.
        OSError: If reading or writing artifacts fails.
    """
    if settings is None:
        settings = get_settings()

    is_production = options.environment == Environment.PRODUCTION
    template_path = settings.resolve(settings.resolver_template)
    resolver_path = settings.resolve(settings.resolver_output)
    mesh_source_path = settings.resolve(settings.mesh_source)
    mesh_json_path = settings.resolve(settings.mesh_output)

    # Step 1: configuration
    if config is None:
        config = config_loader(
            is_production=is_production,
            config_dir=settings.resolve(settings.config_dir),
        )
    logger.info("Building mesh for %s", config.environment)

    # Step 2: mesh configuration
    mesh: MeshConfiguration = build_mesh_configuration(
        load_mesh_source(mesh_source_path), config, mesh_source_path.parent
    )
    mesh_document = mesh.to_mesh_json()
    variables = template_variables(config)

    # Steps 3-4: digests
    config_digest = compute_config_digest(mesh_document, variables)
    template_digest = _template_digest(template_path)

    # Step 5: previous metadata
    existing = read_artifact(resolver_path)
    previous = extract(existing) if existing is not None else None

    # Step 6: decision
    decision = decide(
        template_digest,
        config_digest,
        previous,
        force=options.force,
        artifact_exists=existing is not None,
    )
    logger.info(
        "Resolver regeneration %s: %s",
        "needed" if decision.needed else "skipped",
        decision.reason,
    )

    if not decision.needed:
        mesh_json_written = write_json_if_changed(mesh_json_path, mesh_document)
        return GenerationResult(
            regenerated=False,
            reason=decision.reason,
            metadata=previous,
            resolver_path=resolver_path,
            mesh_json_path=mesh_json_path,
            mesh_json_written=mesh_json_written,
        )

    # Step 8: compile and write
    try:
        template_text = template_path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        raise SerializationError(f"Template {template_path} is not UTF-8: {e}") from e

    body = compile_template(template_text, variables)
    unresolved = find_placeholders(body)
    if unresolved:
        logger.warning(
            "Resolver has unresolved placeholders: %s", ", ".join(unresolved)
        )

    metadata = GenerationMetadata(
        template_digest=template_digest,
        config_digest=config_digest,
        generated_at=now or datetime.now(timezone.utc),
        format_version=METADATA_FORMAT_VERSION,
    )
    write_text_atomic(resolver_path, embed(body, metadata))
    logger.info("Generated %s", resolver_path)

    mesh_json_written = write_json_if_changed(mesh_json_path, mesh_document)

    return GenerationResult(
        regenerated=True,
        reason=decision.reason,
        metadata=metadata,
        resolver_path=resolver_path,
        mesh_json_path=mesh_json_path,
        mesh_json_written=mesh_json_written,
        unresolved_placeholders=unresolved,
    )


__all__ = [
    "VOLATILE_CONFIG_KEYS",
    "BuildOptions",
    "GenerationResult",
    "TemplateMissingError",
    "build_mesh",
    "compute_config_digest",
]
