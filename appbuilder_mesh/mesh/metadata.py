"""Generation metadata embedded in the resolver artifact.

The first line of a generated resolver is a block comment carrying the
digests it was generated from:

    /** METADATA: {"template_digest": "...", ...} */

The line is found again with a line scan, without parsing the rest of
the JavaScript file.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

METADATA_FORMAT_VERSION = "1.0.0"
METADATA_PREFIX = "/** METADATA: "
METADATA_SUFFIX = " */"

METADATA_LINE_PATTERN = re.compile(r"^/\*\* METADATA: (?P<payload>.+) \*/$")


class GenerationMetadata(BaseModel):
    """Digests and provenance of a generated resolver.

    Attributes:
        template_digest: SHA-256 of the template file bytes.
        config_digest: SHA-256 of the effective configuration.
        generated_at: Generation time.
        format_version: Version of this metadata format.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    template_digest: str
    config_digest: str
    generated_at: datetime
    format_version: str = METADATA_FORMAT_VERSION


def format_metadata_line(metadata: GenerationMetadata) -> str:
    """Render the single marker line for a metadata record."""
    return f"{METADATA_PREFIX}{metadata.model_dump_json()}{METADATA_SUFFIX}"


def embed(body: str, metadata: GenerationMetadata) -> str:
    """Prepend the metadata line to an artifact body.

    Marker lines already present in body are dropped so the artifact
    carries exactly one record.

    Args:
        body: Compiled artifact text.
        metadata: Metadata to embed.

    Returns:
        Artifact text starting with the metadata line.
    """
    lines = [
        line
        for line in body.splitlines(keepends=True)
        if not METADATA_LINE_PATTERN.match(line.rstrip("\r\n"))
    ]
    return format_metadata_line(metadata) + "\n" + "".join(lines)


def extract(body: str) -> GenerationMetadata | None:
    """Recover the metadata record from an artifact.

    Args:
        body: Artifact text.

    Returns:
        The embedded metadata, or None if the marker is absent or its
        payload does not parse.
    """
    for line in body.splitlines():
        match = METADATA_LINE_PATTERN.match(line)
        if match is None:
            continue
        try:
            return GenerationMetadata.model_validate_json(match.group("payload"))
        except ValidationError as e:
            logger.debug("Ignoring unreadable metadata line: %s", e)
            return None
    return None


__all__ = [
    "METADATA_FORMAT_VERSION",
    "METADATA_LINE_PATTERN",
    "GenerationMetadata",
    "embed",
    "extract",
    "format_metadata_line",
]
