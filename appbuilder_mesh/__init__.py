"""App Builder Mesh - build and deploy tooling for Adobe API Mesh projects.

This package compiles the mesh configuration and resolver artifact for an
App Builder project and drives the `aio` CLI to provision the mesh.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
