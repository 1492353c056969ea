"""Pydantic models for the App Builder application configuration.

The application configuration is the project's own settings (Commerce
instance, mesh credentials, caching and batching knobs, runtime actions).
It feeds the resolver template variables, the upstream URL rewrite and
the generated frontend configuration.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommercePathsSchema(BaseModel):
    """Commerce REST path fragments."""

    model_config = ConfigDict(extra="forbid")

    products: str = "/products"
    categories: str = "/categories"
    stock_items: str = "/stockItems"
    admin_token: str = "/integration/admin/token"


class CommerceSchema(BaseModel):
    """Commerce instance settings.

    Attributes:
        base_url: Base URL of the Commerce instance (scheme and host).
        api_version: REST API version segment.
        timeout_ms: Request timeout in milliseconds.
        paths: REST path fragments.
        product_fields: Product fields requested by the mesh resolvers.
    """

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="Commerce base URL")
    api_version: str = "V1"
    timeout_ms: int = Field(default=30000, ge=0)
    paths: CommercePathsSchema = Field(default_factory=CommercePathsSchema)
    product_fields: list[str] = Field(
        default_factory=lambda: [
            "sku",
            "name",
            "price",
            "qty",
            "categories",
            "images",
        ]
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base_url is an absolute http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got '{v}'")
        return v.rstrip("/")


class MeshSchema(BaseModel):
    """API Mesh settings."""

    model_config = ConfigDict(extra="forbid")

    api_key: str | None = None
    endpoint: str | None = None
    category_batch_threshold: int = Field(default=20, ge=1)
    inventory_batch_threshold: int = Field(default=50, ge=1)


class ProductsSchema(BaseModel):
    """Product export settings."""

    model_config = ConfigDict(extra="forbid")

    page_size: int = Field(default=100, ge=1)
    max_pages: int = Field(default=25, ge=1)
    max_categories_display: int = Field(default=10, ge=1)


class CachingSchema(BaseModel):
    """Cache TTLs in milliseconds."""

    model_config = ConfigDict(extra="forbid")

    categories_ttl_ms: int = Field(default=300000, ge=0)
    mesh_ttl_ms: int = Field(default=300000, ge=0)


class PerformanceSchema(BaseModel):
    """Performance settings."""

    model_config = ConfigDict(extra="forbid")

    timeout_ms: int = Field(default=30000, ge=0)
    caching: CachingSchema = Field(default_factory=CachingSchema)


class StorageSchema(BaseModel):
    """File storage settings."""

    model_config = ConfigDict(extra="forbid")

    provider: Literal["s3", "app-builder"] = "app-builder"


class RuntimeSchema(BaseModel):
    """App Builder runtime settings used to build action URLs."""

    model_config = ConfigDict(extra="forbid")

    package: str = "kukla-integration-service"
    url_prefix: str = "/api/v1/web"
    actions: list[str] = Field(
        default_factory=lambda: [
            "get-products",
            "get-products-mesh",
            "browse-files",
            "delete-file",
            "download-file",
        ]
    )

    def action_url(self, action: str) -> str:
        """Return the web path of a runtime action."""
        return f"{self.url_prefix}/{self.package}/{action}"


class AppConfigSchema(BaseModel):
    """Complete application configuration for one environment."""

    model_config = ConfigDict(extra="forbid")

    environment: Literal["staging", "production"] = "staging"
    commerce: CommerceSchema
    mesh: MeshSchema = Field(default_factory=MeshSchema)
    products: ProductsSchema = Field(default_factory=ProductsSchema)
    performance: PerformanceSchema = Field(default_factory=PerformanceSchema)
    storage: StorageSchema = Field(default_factory=StorageSchema)
    runtime: RuntimeSchema = Field(default_factory=RuntimeSchema)

    @property
    def is_production(self) -> bool:
        """Whether this configuration targets production."""
        return self.environment == "production"


__all__ = [
    "AppConfigSchema",
    "CachingSchema",
    "CommercePathsSchema",
    "CommerceSchema",
    "MeshSchema",
    "PerformanceSchema",
    "ProductsSchema",
    "RuntimeSchema",
    "StorageSchema",
]
