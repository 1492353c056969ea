"""Shared type definitions for appbuilder_mesh.

This module contains enums shared across subpackages
to avoid circular imports.
"""

from enum import Enum


class Environment(str, Enum):
    """Deployment target environment."""

    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_flag(cls, is_production: bool) -> "Environment":
        """Map a --prod style flag to an environment."""
        return cls.PRODUCTION if is_production else cls.STAGING


class MeshStatus(str, Enum):
    """Classification of a mesh status report."""

    PROVISIONING = "provisioning"
    SUCCESS = "success"
    FAILURE = "failure"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        """Whether polling stops on this status."""
        return self in (MeshStatus.SUCCESS, MeshStatus.FAILURE)


class DeploymentState(str, Enum):
    """State of a mesh deployment."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


__all__ = [
    "DeploymentState",
    "Environment",
    "MeshStatus",
]
