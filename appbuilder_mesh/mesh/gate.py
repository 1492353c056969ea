"""Regeneration decision for the resolver artifact.

Pure decision logic, no I/O. Rules are evaluated in order and the first
match wins:

1. forced
2. no prior artifact / no metadata found
3. template changed
4. configuration changed
5. otherwise up to date
"""

from __future__ import annotations

from dataclasses import dataclass

from appbuilder_mesh.mesh.metadata import GenerationMetadata

REASON_FORCED = "forced"
REASON_NO_ARTIFACT = "no prior artifact"
REASON_NO_METADATA = "no metadata found"
REASON_TEMPLATE_CHANGED = "template changed"
REASON_CONFIG_CHANGED = "configuration changed"
REASON_UNCHANGED = "template and configuration unchanged"


@dataclass(frozen=True)
class RegenerationDecision:
    """Outcome of the regeneration gate."""

    needed: bool
    reason: str


def decide(
    current_template_digest: str,
    current_config_digest: str,
    previous_metadata: GenerationMetadata | None,
    force: bool = False,
    artifact_exists: bool = True,
) -> RegenerationDecision:
    """Decide whether the resolver artifact must be regenerated.

    Args:
        current_template_digest: Digest of the template as it is now.
        current_config_digest: Digest of the effective configuration now.
        previous_metadata: Metadata recovered from the existing artifact.
        force: Regenerate regardless of digests.
        artifact_exists: Whether an artifact file was found at all.

    Returns:
        RegenerationDecision with the reason for the decision.
    """
    if force:
        return RegenerationDecision(needed=True, reason=REASON_FORCED)
    if not artifact_exists:
        return RegenerationDecision(needed=True, reason=REASON_NO_ARTIFACT)
    if previous_metadata is None:
        return RegenerationDecision(needed=True, reason=REASON_NO_METADATA)
    if previous_metadata.template_digest != current_template_digest:
        return RegenerationDecision(needed=True, reason=REASON_TEMPLATE_CHANGED)
    if previous_metadata.config_digest != current_config_digest:
        return RegenerationDecision(needed=True, reason=REASON_CONFIG_CHANGED)
    return RegenerationDecision(needed=False, reason=REASON_UNCHANGED)


__all__ = [
    "REASON_CONFIG_CHANGED",
    "REASON_FORCED",
    "REASON_NO_ARTIFACT",
    "REASON_NO_METADATA",
    "REASON_TEMPLATE_CHANGED",
    "REASON_UNCHANGED",
    "RegenerationDecision",
    "decide",
]
