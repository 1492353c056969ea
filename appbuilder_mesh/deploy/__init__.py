"""Mesh deployment module.

This module handles:
- Submitting mesh updates through the aio CLI
- Classifying free-form provisioning status text
- Polling a submitted update to a bounded decision
"""

from appbuilder_mesh.deploy.machine import (
    DeploymentOutcome,
    DeploymentStateMachine,
    DeployOptions,
    RemoteFailure,
)
from appbuilder_mesh.deploy.remote import (
    AioMeshService,
    PollError,
    RemoteMeshService,
    SubmitError,
)
from appbuilder_mesh.deploy.status import StatusKeywords, classify_status

__all__ = [
    "AioMeshService",
    "DeployOptions",
    "DeploymentOutcome",
    "DeploymentStateMachine",
    "PollError",
    "RemoteFailure",
    "RemoteMeshService",
    "StatusKeywords",
    "SubmitError",
    "classify_status",
]
