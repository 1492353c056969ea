"""Mesh configuration extraction.

This module handles:
- Loading the mesh source file (YAML or JSON)
- Rewriting upstream source hosts to the environment's Commerce URL
- Normalizing additional type definitions to SDL text
- Producing the `{"meshConfig": {...}}` document consumed by aio

Type definitions arrive either as SDL text or as a GraphQL document
(parsed from .graphql files); both are printed to SDL on output.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import yaml
from graphql import GraphQLError, parse, print_ast
from graphql.language import DocumentNode

from appbuilder_mesh.appconfig.loader import ConfigLoadError
from appbuilder_mesh.appconfig.schema import AppConfigSchema
from appbuilder_mesh.mesh.hashing import SerializationError

logger = logging.getLogger(__name__)

# (handler type, field) pairs holding upstream URLs
SOURCE_URL_FIELDS = [
    ("openapi", "source"),
    ("JsonSchema", "baseUrl"),
    ("graphql", "endpoint"),
]

GRAPHQL_FILE_SUFFIXES = (".graphql", ".gql")

# Conflicts with the Query type the mesh derives from its sources
_SCHEMA_QUERY_BLOCK = re.compile(r"schema\s*\{\s*query:\s*Query\s*\}", re.IGNORECASE)
_BLANK_LINES = re.compile(r"\n\s*\n")

_KNOWN_KEYS = {"sources", "additionalResolvers", "additionalTypeDefs", "responseConfig"}


class MeshSourceError(ConfigLoadError):
    """Raised when the mesh source file is missing or malformed."""

    def __init__(self, message: str, code: str = "mesh_source_error") -> None:
        super().__init__(message, code=code)


@dataclass(frozen=True)
class SdlTypeDefs:
    """Type definitions given as SDL text."""

    sdl: str

    def to_sdl(self) -> str:
        return self.sdl


@dataclass(frozen=True)
class DocumentTypeDefs:
    """Type definitions given as a parsed GraphQL document."""

    document: DocumentNode

    def to_sdl(self) -> str:
        return print_ast(self.document)


TypeDefs = SdlTypeDefs | DocumentTypeDefs


@dataclass
class MeshConfiguration:
    """The logical mesh to deploy.

    Attributes:
        sources: Upstream source definitions.
        additional_resolvers: Resolver file references.
        type_defs: Additional GraphQL type definitions.
        response_config: Optional response/caching block.
        extra: Other top-level keys, passed through unchanged.
    """

    sources: list[dict[str, Any]]
    additional_resolvers: list[Any] = field(default_factory=list)
    type_defs: TypeDefs | None = None
    response_config: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def additional_type_defs_sdl(self) -> str | None:
        """Return normalized SDL for the additional type definitions."""
        if self.type_defs is None:
            return None
        return normalize_sdl(self.type_defs.to_sdl())

    def to_mesh_json(self) -> dict[str, Any]:
        """Render the aio mesh document."""
        mesh: dict[str, Any] = dict(self.extra)
        mesh["sources"] = self.sources
        mesh["additionalResolvers"] = self.additional_resolvers
        sdl = self.additional_type_defs_sdl()
        if sdl is not None:
            mesh["additionalTypeDefs"] = sdl
        if self.response_config:
            mesh["responseConfig"] = self.response_config
        return {"meshConfig": mesh}


def normalize_sdl(sdl: str) -> str:
    """Drop `schema { query: Query }` blocks and collapse blank lines."""
    sdl = _SCHEMA_QUERY_BLOCK.sub("", sdl)
    return _BLANK_LINES.sub("\n", sdl).strip()


def load_mesh_source(path: Path) -> dict[str, Any]:
    """Load the mesh source file.

    Args:
        path: Path to a .yaml, .yml or .json mesh source.

    Returns:
        Parsed mesh source mapping.

    Raises:
        MeshSourceError: If the file is missing, unreadable or malformed.
    """
    if not path.exists():
        raise MeshSourceError(f"Mesh configuration source not found: {path}")

    suffix = path.suffix.lower()
    try:
        with open(path, encoding="utf-8") as f:
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif suffix == ".json":
                data = json.load(f)
            else:
                raise MeshSourceError(
                    f"Unsupported mesh source format: {suffix} (use .yaml or .json)"
                )
    except (OSError, UnicodeDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise MeshSourceError(f"Failed to read mesh source {path}: {e}") from e

    if not isinstance(data, dict):
        raise MeshSourceError(f"Expected a mapping in {path}, got {type(data).__name__}")
    if not isinstance(data.get("sources"), list):
        raise MeshSourceError(f"Mesh source {path} must define a 'sources' list")
    for index, source in enumerate(data["sources"]):
        if not isinstance(source, dict):
            raise MeshSourceError(
                f"Mesh source {path}: sources[{index}] must be a mapping, "
                f"got {type(source).__name__}"
            )
        handler = source.get("handler")
        if handler is not None and not isinstance(handler, dict):
            raise MeshSourceError(
                f"Mesh source {path}: sources[{index}].handler must be a mapping, "
                f"got {type(handler).__name__}"
            )
    return data


def replace_domain(url: str, base_url: str) -> str:
    """Replace the scheme and host of an absolute URL.

    Relative references (local schema files, etc.) are returned unchanged.

    Args:
        url: Upstream URL from the mesh source.
        base_url: Environment base URL providing scheme and host.

    Returns:
        URL pointing at base_url's host with url's path and query.
    """
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return url
    base = urlsplit(base_url)
    return urlunsplit((base.scheme, base.netloc, parts.path, parts.query, parts.fragment))


def rewrite_source_urls(
    sources: list[dict[str, Any]], base_url: str
) -> list[dict[str, Any]]:
    """Point every upstream source at the environment's base URL.

    Args:
        sources: Mesh sources (not modified).
        base_url: Environment Commerce base URL.

    Returns:
        Copy of sources with rewritten URLs.
    """
    rewritten = copy.deepcopy(sources)
    for source in rewritten:
        handler = source.get("handler") or {}
        for handler_type, url_field in SOURCE_URL_FIELDS:
            options = handler.get(handler_type)
            if not isinstance(options, dict):
                continue
            value = options.get(url_field)
            if isinstance(value, str):
                new_value = replace_domain(value, base_url)
                if new_value != value:
                    logger.debug(
                        "Rewrote %s source URL: %s -> %s",
                        source.get("name", "?"),
                        value,
                        new_value,
                    )
                options[url_field] = new_value
    return rewritten


def _parse_sdl(sdl: str, origin: str) -> DocumentNode:
    try:
        return parse(sdl)
    except GraphQLError as e:
        raise SerializationError(f"Invalid GraphQL in {origin}: {e.message}") from e


def parse_type_defs(raw: Any, base_dir: Path) -> TypeDefs | None:
    """Interpret the additionalTypeDefs entry of a mesh source.

    A string is SDL text. A list holds SDL strings and/or paths to
    .graphql files (relative to base_dir); its entries are parsed and
    combined into a single GraphQL document.

    Raises:
        MeshSourceError: If a referenced schema file cannot be read.
        SerializationError: If the value has an unsupported type or a
            document does not parse.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        return SdlTypeDefs(raw)
    if not isinstance(raw, list):
        raise SerializationError(
            f"additionalTypeDefs must be a string or list, got {type(raw).__name__}"
        )

    definitions = []
    for entry in raw:
        if not isinstance(entry, str):
            raise SerializationError(
                f"additionalTypeDefs entries must be strings, got {type(entry).__name__}"
            )
        if entry.endswith(GRAPHQL_FILE_SUFFIXES):
            schema_path = base_dir / entry
            try:
                sdl = schema_path.read_text(encoding="utf-8")
            except OSError as e:
                raise MeshSourceError(f"Failed to read schema file {schema_path}: {e}") from e
            document = _parse_sdl(sdl, str(schema_path))
        else:
            document = _parse_sdl(entry, "inline type definitions")
        definitions.extend(document.definitions)

    return DocumentTypeDefs(DocumentNode(definitions=tuple(definitions)))


def build_mesh_configuration(
    source: dict[str, Any],
    config: AppConfigSchema,
    base_dir: Path,
) -> MeshConfiguration:
    """Build the effective MeshConfiguration for an environment.

    Args:
        source: Mesh source mapping (see load_mesh_source).
        config: Effective application configuration.
        base_dir: Directory against which schema file paths resolve.

    Returns:
        MeshConfiguration with rewritten URLs and parsed type definitions.
    """
    return MeshConfiguration(
        sources=rewrite_source_urls(source["sources"], config.commerce.base_url),
        additional_resolvers=list(source.get("additionalResolvers") or []),
        type_defs=parse_type_defs(source.get("additionalTypeDefs"), base_dir),
        response_config=source.get("responseConfig"),
        extra={k: v for k, v in source.items() if k not in _KNOWN_KEYS},
    )


__all__ = [
    "DocumentTypeDefs",
    "MeshConfiguration",
    "MeshSourceError",
    "SdlTypeDefs",
    "TypeDefs",
    "build_mesh_configuration",
    "load_mesh_source",
    "normalize_sdl",
    "parse_type_defs",
    "replace_domain",
    "rewrite_source_urls",
]
