"""Mesh status classification.

The aio CLI reports provisioning status as free-form text (for example
"Mesh provisioned successfully." or "Currently the mesh is being
provisioned"), sometimes wrapped in JSON. Classification is keyword
based; keywords are data so they can be updated without code changes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from appbuilder_mesh.config import Settings
from appbuilder_mesh.types import MeshStatus

# Keys that carry the status text in JSON output
STATUS_JSON_KEYS = ("meshStatus", "status")


@dataclass(frozen=True)
class StatusKeywords:
    """Substrings (case-insensitive) identifying each status class.

    Checked in order: success, failure, provisioning.
    """

    success: tuple[str, ...] = ("success",)
    failure: tuple[str, ...] = ("error", "failed")
    provisioning: tuple[str, ...] = (
        "provisioning",
        "being provisioned",
        "pending",
        "building",
        "in progress",
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> StatusKeywords:
        """Build keywords from tool settings."""
        return cls(
            success=tuple(settings.status_success_keywords),
            failure=tuple(settings.status_failure_keywords),
            provisioning=tuple(settings.status_provisioning_keywords),
        )


DEFAULT_KEYWORDS = StatusKeywords()


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword.lower() in text for keyword in keywords)


def classify_status(text: str, keywords: StatusKeywords = DEFAULT_KEYWORDS) -> MeshStatus:
    """Classify a status report.

    Args:
        text: Status text reported by the remote service.
        keywords: Keyword sets to match.

    Returns:
        MeshStatus for the text; UNKNOWN if nothing matched.
    """
    lowered = text.lower()
    if _contains_any(lowered, keywords.success):
        return MeshStatus.SUCCESS
    if _contains_any(lowered, keywords.failure):
        return MeshStatus.FAILURE
    if _contains_any(lowered, keywords.provisioning):
        return MeshStatus.PROVISIONING
    return MeshStatus.UNKNOWN


def extract_status_text(output: str) -> str:
    """Extract the status text from status command output.

    JSON objects with a meshStatus/status key yield that value; anything
    else is returned stripped.
    """
    stripped = output.strip()
    if stripped.startswith("{"):
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            return stripped
        if isinstance(data, dict):
            for key in STATUS_JSON_KEYS:
                value = data.get(key)
                if isinstance(value, str):
                    return value
    return stripped


__all__ = [
    "DEFAULT_KEYWORDS",
    "StatusKeywords",
    "classify_status",
    "extract_status_text",
]
