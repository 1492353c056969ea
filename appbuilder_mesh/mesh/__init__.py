"""Mesh build module.

This module handles:
- Content digests and the regeneration gate
- Resolver template compilation and embedded metadata
- Mesh configuration extraction
- Build orchestration and atomic artifact writes
"""

from appbuilder_mesh.mesh.build import (
    BuildOptions,
    GenerationResult,
    TemplateMissingError,
    build_mesh,
)
from appbuilder_mesh.mesh.metadata import GenerationMetadata

__all__ = [
    "BuildOptions",
    "GenerationMetadata",
    "GenerationResult",
    "TemplateMissingError",
    "build_mesh",
]

# Access submodules via appbuilder_mesh.mesh.hashing, etc.
