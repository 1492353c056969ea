"""Content digests for the regeneration gate.

This module handles:
- SHA-256 digests over raw bytes and files
- Canonical JSON serialization of configuration objects
- Removal of volatile fields before hashing

Digests are plain 64-character hex strings. Equal logical inputs always
produce equal digests regardless of key insertion order.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


class SerializationError(Exception):
    """Raised when an object cannot be serialized for hashing or output."""

    def __init__(self, message: str, code: str = "serialization_error") -> None:
        super().__init__(message)
        self.code = code


def hash_bytes(data: bytes) -> str:
    """Compute the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_file(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.

    Raises:
        OSError: If the file does not exist or cannot be read.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def _strip_path(obj: Any, path: list[str]) -> None:
    """Remove the key at a dotted path from nested dicts, if present."""
    head, *rest = path
    if not isinstance(obj, dict) or head not in obj:
        return
    if rest:
        _strip_path(obj[head], rest)
    else:
        del obj[head]


def canonical_json(obj: Any, exclude_keys: Iterable[str] = ()) -> str:
    """Serialize an object to canonical JSON.

    The object is deep copied, then every key named in exclude_keys is
    removed. Keys are dotted paths from the top level, e.g. "timestamp"
    or "meshConfig.timestamp".

    Args:
        obj: JSON-compatible object.
        exclude_keys: Dotted key paths to drop before serializing.

    Returns:
        JSON text with sorted keys and compact separators.

    Raises:
        SerializationError: If the object is cyclic or not JSON-compatible.
    """
    try:
        stripped = copy.deepcopy(obj)
        for key in exclude_keys:
            _strip_path(stripped, key.split("."))
        return json.dumps(
            stripped,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )
    except RecursionError as e:
        raise SerializationError("Object is too deeply nested to serialize") from e
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Object cannot be serialized: {e}") from e


def hash_canonical_object(obj: Any, exclude_keys: Iterable[str] = ()) -> str:
    """Compute the SHA-256 digest of an object's canonical JSON form.

    Args:
        obj: JSON-compatible object.
        exclude_keys: Dotted key paths of volatile fields to ignore.

    Returns:
        SHA-256 hex digest.

    Raises:
        SerializationError: If the object cannot be serialized.
    """
    return hash_bytes(canonical_json(obj, exclude_keys).encode("utf-8"))


__all__ = [
    "HASH_CHUNK_SIZE",
    "SerializationError",
    "canonical_json",
    "hash_bytes",
    "hash_canonical_object",
    "hash_file",
]
