"""Resolver template compilation.

Placeholders use the `{{{NAME}}}` syntax. Two shapes are substituted:

- Comment form: an optional numeric default followed by the placeholder in
  a block comment, e.g. `20 /* {{{CATEGORY_BATCH_THRESHOLD}}} */`. The
  template stays valid JavaScript before compilation; the whole
  literal-plus-comment span is replaced by the value.
- Bare form: `{{{NAME}}}` anywhere else.

Placeholders without a supplied value are left untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from appbuilder_mesh.appconfig.schema import AppConfigSchema

PLACEHOLDER_PATTERN = re.compile(r"\{\{\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)\}\}\}")

# Numeric literal (optional) + block comment holding only the placeholder
_NUMERIC_PREFIX = r"(?:(?<![\w.])-?\d+(?:\.\d+)?[ \t]*)?"


def _token(name: str) -> str:
    return re.escape("{{{" + name + "}}}")


def _comment_pattern(name: str) -> re.Pattern[str]:
    return re.compile(_NUMERIC_PREFIX + r"/\*[ \t]*" + _token(name) + r"[ \t]*\*/")


def _bare_pattern(name: str) -> re.Pattern[str]:
    return re.compile(_token(name))


def compile_template(template_text: str, variables: Mapping[str, str]) -> str:
    """Substitute variables into template text.

    Args:
        template_text: Template source.
        variables: Mapping of placeholder name to replacement value.

    Returns:
        Compiled text. Every occurrence of a supplied placeholder, in
        either shape, is replaced.
    """
    compiled = template_text
    for name, value in variables.items():
        replacement = str(value)
        # Callables keep backslashes in values literal
        compiled = _comment_pattern(name).sub(lambda _m: replacement, compiled)
        compiled = _bare_pattern(name).sub(lambda _m: replacement, compiled)
    return compiled


def find_placeholders(text: str) -> list[str]:
    """List the distinct placeholder names present in text, in order."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_PATTERN.finditer(text):
        seen.setdefault(match.group("name"), None)
    return list(seen)


def template_variables(config: AppConfigSchema) -> dict[str, str]:
    """Derive the resolver template variables from the app configuration.

    Args:
        config: Effective application configuration.

    Returns:
        Mapping of placeholder name to string value.
    """
    commerce = config.commerce
    return {
        "COMMERCE_BASE_URL": commerce.base_url,
        "COMMERCE_API_VERSION": commerce.api_version,
        "COMMERCE_PRODUCT_FIELDS": ",".join(commerce.product_fields),
        "COMMERCE_PRODUCTS_PATH": commerce.paths.products,
        "COMMERCE_CATEGORIES_PATH": commerce.paths.categories,
        "COMMERCE_STOCK_ITEMS_PATH": commerce.paths.stock_items,
        "MESH_API_KEY": config.mesh.api_key or "",
        "ENVIRONMENT": config.environment,
        "MESH_CACHE_TTL": str(config.performance.caching.mesh_ttl_ms),
        "CATEGORY_BATCH_THRESHOLD": str(config.mesh.category_batch_threshold),
        "INVENTORY_BATCH_THRESHOLD": str(config.mesh.inventory_batch_threshold),
        "MAX_CATEGORIES_DISPLAY": str(config.products.max_categories_display),
    }


__all__ = [
    "PLACEHOLDER_PATTERN",
    "compile_template",
    "find_placeholders",
    "template_variables",
]
