"""Artifact file I/O.

This module handles:
- Atomic text writes (temp file in the target directory, then replace)
- Reading existing artifacts when present
- Writing JSON documents only when their content changed

Readers never observe a half-written artifact: content is written to a
sibling temp file and moved into place with os.replace.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _target_mode(path: Path) -> int:
    """Return the permission bits a rewritten file should have.

    An existing file keeps its mode; a new file gets the default mode
    for the process umask, as open() would give it.
    """
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_text_atomic(path: Path, content: str) -> Path:
    """Write text to a file atomically.

    The temp file is created private (0600); it is given the
    destination's permission bits before it replaces the destination.

    Args:
        path: Destination file.
        content: UTF-8 text to write.

    Returns:
        The destination path.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp_file:
        tmp_path = Path(tmp_file.name)

    try:
        tmp_path.write_text(content, encoding="utf-8")
        os.chmod(tmp_path, _target_mode(path))
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on failure
        tmp_path.unlink(missing_ok=True)
        raise

    logger.debug("Wrote %s (%d bytes)", path, len(content.encode("utf-8")))
    return path


def read_artifact_bytes(path: Path) -> bytes | None:
    """Read an artifact's raw bytes, or None if it does not exist.

    Raises:
        OSError: If the file exists but cannot be read.
    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def read_artifact(path: Path) -> str | None:
    """Read an artifact's text, or None if it does not exist.

    Bytes that are not valid UTF-8 are replaced with U+FFFD, so a
    corrupted artifact reads as text that carries no usable metadata.

    Raises:
        OSError: If the file exists but cannot be read.
    """
    data = read_artifact_bytes(path)
    if data is None:
        return None
    return data.decode("utf-8", errors="replace")


def render_json(document: dict[str, Any]) -> str:
    """Render a JSON document the way generated files are stored."""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def write_json_if_changed(path: Path, document: dict[str, Any]) -> bool:
    """Write a JSON document unless the file already holds identical content.

    Args:
        path: Destination file.
        document: JSON-compatible document.

    Returns:
        True if the file was written.
    """
    content = render_json(document)
    if read_artifact_bytes(path) == content.encode("utf-8"):
        logger.debug("%s unchanged, not rewriting", path)
        return False
    write_text_atomic(path, content)
    logger.info("Wrote %s", path)
    return True


__all__ = [
    "read_artifact",
    "read_artifact_bytes",
    "render_json",
    "write_json_if_changed",
    "write_text_atomic",
]
