"""Public API for ontlock.

High-level functions over definitions, snapshots and lock files. Callers should
use these instead of importing from ``ontlock.kernel`` or ``_internal``.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ontlock.contracts import ApiSurfaceSnapshot, LockRecord
from ontlock.definition import ApiDefinition, define_api
from ontlock.errors import DefinitionError, HandlerLoadError, LockParseError
from ontlock.kernel.diff import Changeset, diff_snapshots
from ontlock.kernel.hash_utils import hash_snapshot
from ontlock.kernel.snapshot import extract_snapshot
from ontlock.lockfile import parse_lock
from ontlock.registry import load_object

SnapshotSource = Union[ApiSurfaceSnapshot, ApiDefinition, Dict[str, Any], str, os.PathLike, Path]


def _normalize_path(path: Union[str, os.PathLike, Path]) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


def snapshot(definition: ApiDefinition) -> ApiSurfaceSnapshot:
    """Extract the canonical snapshot of ``definition``."""
    return extract_snapshot(definition)


def hash_definition(definition: ApiDefinition) -> str:
    """16-hex content hash of the definition's snapshot."""
    return hash_snapshot(extract_snapshot(definition))


def _load_snapshot_from_dict(data: Dict[str, Any], source: str = "<dict>") -> ApiSurfaceSnapshot:
    # A lock record wraps the snapshot under "ontology"; a bare snapshot does not.
    if "ontology" in data:
        return parse_lock(json.dumps(data), source=source).snapshot
    try:
        return ApiSurfaceSnapshot.model_validate(data)
    except ValidationError as e:
        raise LockParseError(f"{source}: invalid snapshot: {e}") from e


def _load_snapshot_from_path(path: Path) -> ApiSurfaceSnapshot:
    if path.is_dir():
        path = path / "ont.lock"
    if not path.is_file():
        raise FileNotFoundError(f"Snapshot file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LockParseError(f"{path}: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise LockParseError(f"{path}: expected a JSON object, got {type(data).__name__}")
    return _load_snapshot_from_dict(data, source=str(path))


def load_snapshot(source: SnapshotSource) -> ApiSurfaceSnapshot:
    """Load a snapshot from a definition, a snapshot, a dict, or a JSON file.

    A JSON file (or dict) may hold a bare snapshot or a full lock record; a
    directory is read as the ``ont.lock`` inside it.

    Raises:
        FileNotFoundError: if a path does not exist
        LockParseError: if the content is not a valid snapshot or lock record
    """
    if isinstance(source, ApiSurfaceSnapshot):
        return source
    if isinstance(source, ApiDefinition):
        return extract_snapshot(source)
    if isinstance(source, dict):
        return _load_snapshot_from_dict(source)
    return _load_snapshot_from_path(_normalize_path(source))


def diff(old: Optional[SnapshotSource], new: SnapshotSource) -> Changeset:
    """
    Compare two snapshots.

    Args:
        old: The approved side; None means first run (everything is added)
        new: The live side

    Returns:
        Changeset with categorized changes and the new snapshot/hash
    """
    old_snapshot = load_snapshot(old) if old is not None else None
    return diff_snapshots(old_snapshot, load_snapshot(new))


def load_lock_record(path: Union[str, os.PathLike, Path]) -> LockRecord:
    """Parse a lock file at ``path`` (a file, or a directory holding ``ont.lock``)."""
    path = _normalize_path(path)
    if path.is_dir():
        path = path / "ont.lock"
    if not path.is_file():
        raise FileNotFoundError(f"Lockfile not found: {path}")
    return parse_lock(path.read_text(encoding="utf-8"), source=str(path))


def load_definition(ref: str, base_dir: Optional[Union[str, os.PathLike, Path]] = None) -> ApiDefinition:
    """Load a definition from ``package.module:attr`` or ``path/file.py:attr``.

    The target may be an ApiDefinition, a zero-argument factory returning one,
    or a plain dict passed to ``define_api``.

    Raises:
        DefinitionError: if the target is not (and does not produce) a definition
        HandlerLoadError: if the reference cannot be imported
    """
    obj = load_object(ref, base_dir=base_dir)
    if callable(obj) and not isinstance(obj, ApiDefinition):
        obj = obj()
    if isinstance(obj, ApiDefinition):
        return obj
    if isinstance(obj, dict):
        return define_api(**obj)
    raise DefinitionError(f"{ref} is not an API definition (got {type(obj).__name__})")


__all__ = [
    "snapshot",
    "hash_definition",
    "diff",
    "load_snapshot",
    "load_lock_record",
    "load_definition",
    "HandlerLoadError",
]
