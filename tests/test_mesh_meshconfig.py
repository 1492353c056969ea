"""Tests for mesh configuration extraction."""

import json
from pathlib import Path

import pytest
from graphql import parse

from appbuilder_mesh.appconfig.loader import ConfigLoadError
from appbuilder_mesh.appconfig.schema import AppConfigSchema
from appbuilder_mesh.mesh.hashing import SerializationError
from appbuilder_mesh.mesh.meshconfig import (
    DocumentTypeDefs,
    MeshConfiguration,
    MeshSourceError,
    SdlTypeDefs,
    build_mesh_configuration,
    load_mesh_source,
    normalize_sdl,
    parse_type_defs,
    replace_domain,
    rewrite_source_urls,
)

MESH_SOURCE_YAML = """
sources:
  - name: Commerce
    handler:
      openapi:
        source: https://old.example.com/rest/all/schema?services=all
  - name: Categories
    handler:
      JsonSchema:
        baseUrl: https://old.example.com/rest/V1
        operations: []
additionalResolvers:
  - ./mesh-resolvers.js
additionalTypeDefs: |
  type Product { sku: String }
"""


@pytest.fixture
def app_config() -> AppConfigSchema:
    """Create an application configuration."""
    return AppConfigSchema.model_validate(
        {"commerce": {"base_url": "https://shop.example.com"}}
    )


class TestReplaceDomain:
    """Tests for replace_domain."""

    def test_swaps_scheme_and_host(self) -> None:
        """Scheme and host should come from the base URL."""
        url = "http://old.example.com:8080/rest/V1/products?x=1"
        assert (
            replace_domain(url, "https://shop.example.com")
            == "https://shop.example.com/rest/V1/products?x=1"
        )

    def test_relative_path_unchanged(self) -> None:
        """Relative references should be left alone."""
        assert replace_domain("./schema.json", "https://shop.example.com") == (
            "./schema.json"
        )


class TestRewriteSourceUrls:
    """Tests for rewrite_source_urls."""

    def test_rewrites_known_fields(self) -> None:
        """openapi, JsonSchema and graphql URLs should be rewritten."""
        sources = [
            {"name": "a", "handler": {"openapi": {"source": "https://o.test/s"}}},
            {"name": "b", "handler": {"JsonSchema": {"baseUrl": "https://o.test/b"}}},
            {"name": "c", "handler": {"graphql": {"endpoint": "https://o.test/g"}}},
        ]
        rewritten = rewrite_source_urls(sources, "https://n.test")
        assert rewritten[0]["handler"]["openapi"]["source"] == "https://n.test/s"
        assert rewritten[1]["handler"]["JsonSchema"]["baseUrl"] == "https://n.test/b"
        assert rewritten[2]["handler"]["graphql"]["endpoint"] == "https://n.test/g"

    def test_input_not_mutated(self) -> None:
        """The caller's sources should not be modified."""
        sources = [{"handler": {"openapi": {"source": "https://o.test/s"}}}]
        rewrite_source_urls(sources, "https://n.test")
        assert sources[0]["handler"]["openapi"]["source"] == "https://o.test/s"

    def test_source_without_handler(self) -> None:
        """Sources without a known handler should pass through."""
        sources = [{"name": "x", "handler": {"other": {"url": "https://o.test"}}}]
        assert rewrite_source_urls(sources, "https://n.test") == sources


class TestNormalizeSdl:
    """Tests for normalize_sdl."""

    def test_drops_schema_block(self) -> None:
        """schema { query: Query } should be removed."""
        sdl = "type Query { a: Int }\n\nschema {\n  query: Query\n}\n"
        assert normalize_sdl(sdl) == "type Query { a: Int }"

    def test_collapses_blank_lines(self) -> None:
        """Blank line runs should collapse to single newlines."""
        sdl = "type A { a: Int }\n\n\n  \ntype B { b: Int }\n"
        assert normalize_sdl(sdl) == "type A { a: Int }\ntype B { b: Int }"


class TestParseTypeDefs:
    """Tests for parse_type_defs."""

    def test_none(self, tmp_path: Path) -> None:
        """Absent type definitions should yield None."""
        assert parse_type_defs(None, tmp_path) is None

    def test_string_is_sdl(self, tmp_path: Path) -> None:
        """A string should be kept as SDL text."""
        type_defs = parse_type_defs("type A { a: Int }", tmp_path)
        assert isinstance(type_defs, SdlTypeDefs)
        assert type_defs.to_sdl() == "type A { a: Int }"

    def test_list_with_file(self, tmp_path: Path) -> None:
        """Lists should combine inline SDL and .graphql files."""
        (tmp_path / "product.graphql").write_text("type Product { sku: String }\n")
        type_defs = parse_type_defs(
            ["product.graphql", "type Category { id: Int }"], tmp_path
        )
        assert isinstance(type_defs, DocumentTypeDefs)
        sdl = type_defs.to_sdl()
        assert "type Product" in sdl
        assert "type Category" in sdl
        assert sdl.index("type Product") < sdl.index("type Category")

    def test_invalid_graphql(self, tmp_path: Path) -> None:
        """Syntax errors should raise SerializationError."""
        with pytest.raises(SerializationError, match="Invalid GraphQL"):
            parse_type_defs(["type {"], tmp_path)

    def test_missing_schema_file(self, tmp_path: Path) -> None:
        """An unreadable schema file should raise MeshSourceError."""
        with pytest.raises(MeshSourceError):
            parse_type_defs(["missing.graphql"], tmp_path)

    def test_unsupported_type(self, tmp_path: Path) -> None:
        """Mappings should be rejected."""
        with pytest.raises(SerializationError):
            parse_type_defs({"type": "A"}, tmp_path)


class TestMeshConfiguration:
    """Tests for MeshConfiguration.to_mesh_json."""

    def test_minimal(self) -> None:
        """A minimal mesh should render sources and resolvers."""
        mesh = MeshConfiguration(sources=[{"name": "a"}])
        assert mesh.to_mesh_json() == {
            "meshConfig": {"sources": [{"name": "a"}], "additionalResolvers": []}
        }

    def test_document_type_defs_print_as_sdl(self) -> None:
        """Document type definitions should be printed and normalized."""
        document = parse("type Query { a: Int }\nschema { query: Query }")
        mesh = MeshConfiguration(sources=[], type_defs=DocumentTypeDefs(document))
        sdl = mesh.to_mesh_json()["meshConfig"]["additionalTypeDefs"]
        assert "schema" not in sdl
        assert sdl.startswith("type Query")

    def test_response_config_and_extra(self) -> None:
        """responseConfig and unknown keys should be passed through."""
        mesh = MeshConfiguration(
            sources=[],
            response_config={"cache": True},
            extra={"plugins": []},
        )
        document = mesh.to_mesh_json()["meshConfig"]
        assert document["responseConfig"] == {"cache": True}
        assert document["plugins"] == []


class TestLoadMeshSource:
    """Tests for load_mesh_source."""

    def test_yaml(self, tmp_path: Path) -> None:
        """YAML sources should load."""
        path = tmp_path / "mesh.config.yaml"
        path.write_text(MESH_SOURCE_YAML)
        source = load_mesh_source(path)
        assert len(source["sources"]) == 2

    def test_json(self, tmp_path: Path) -> None:
        """JSON sources should load."""
        path = tmp_path / "mesh.config.json"
        path.write_text(json.dumps({"sources": []}))
        assert load_mesh_source(path) == {"sources": []}

    def test_missing(self, tmp_path: Path) -> None:
        """A missing source should raise MeshSourceError."""
        with pytest.raises(MeshSourceError) as exc_info:
            load_mesh_source(tmp_path / "mesh.config.yaml")
        assert isinstance(exc_info.value, ConfigLoadError)
        assert exc_info.value.code == "mesh_source_error"

    def test_unsupported_suffix(self, tmp_path: Path) -> None:
        """Other formats should be rejected."""
        path = tmp_path / "mesh.toml"
        path.write_text("sources = []")
        with pytest.raises(MeshSourceError, match="Unsupported"):
            load_mesh_source(path)

    def test_requires_sources_list(self, tmp_path: Path) -> None:
        """A source without a sources list should be rejected."""
        path = tmp_path / "mesh.config.yaml"
        path.write_text("additionalResolvers: []\n")
        with pytest.raises(MeshSourceError, match="sources"):
            load_mesh_source(path)

    def test_source_entry_not_mapping(self, tmp_path: Path) -> None:
        """A source entry that is not a mapping should be rejected."""
        path = tmp_path / "mesh.config.yaml"
        path.write_text("sources:\n  - just-a-string\n")
        with pytest.raises(MeshSourceError, match=r"sources\[0\] must be a mapping"):
            load_mesh_source(path)

    def test_handler_not_mapping(self, tmp_path: Path) -> None:
        """A handler that is not a mapping should be rejected."""
        path = tmp_path / "mesh.config.yaml"
        path.write_text("sources:\n  - name: commerce\n    handler: openapi\n")
        with pytest.raises(MeshSourceError, match=r"sources\[0\]\.handler"):
            load_mesh_source(path)

    def test_not_utf8(self, tmp_path: Path) -> None:
        """Undecodable bytes should surface as MeshSourceError."""
        path = tmp_path / "mesh.config.yaml"
        path.write_bytes(b"sources:\n  - name: \xff\xfe\n")
        with pytest.raises(MeshSourceError, match="Failed to read"):
            load_mesh_source(path)


class TestBuildMeshConfiguration:
    """Tests for build_mesh_configuration."""

    def test_full(self, tmp_path: Path, app_config: AppConfigSchema) -> None:
        """The built mesh should point at the environment's Commerce host."""
        path = tmp_path / "mesh.config.yaml"
        path.write_text(MESH_SOURCE_YAML)
        mesh = build_mesh_configuration(load_mesh_source(path), app_config, tmp_path)
        document = mesh.to_mesh_json()["meshConfig"]

        commerce = document["sources"][0]["handler"]["openapi"]["source"]
        assert commerce == "https://shop.example.com/rest/all/schema?services=all"
        categories = document["sources"][1]["handler"]["JsonSchema"]["baseUrl"]
        assert categories == "https://shop.example.com/rest/V1"
        assert document["additionalResolvers"] == ["./mesh-resolvers.js"]
        assert document["additionalTypeDefs"] == "type Product { sku: String }"
