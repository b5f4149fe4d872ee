"""Lock store: the persisted, human-approved snapshot (``ont.lock``).

The lock file is meant to be committed to version control. It holds exactly one
record, overwritten wholesale on each approval.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from ontlock._internal.canonical_json import lock_dumps
from ontlock.contracts import ApiSurfaceSnapshot, LockRecord
from ontlock.errors import LockConflictError, LockParseError
from ontlock.kernel.hash_utils import hash_snapshot

logger = logging.getLogger(__name__)

LOCKFILE_NAME = "ont.lock"
LOCKFILE_VERSION = 1

# Sentinel: the caller did not ask for an optimistic-concurrency check.
_UNCHECKED: Any = object()


def _normalize_path(path: Union[str, os.PathLike, Path]) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


def lockfile_path(directory: Union[str, os.PathLike, Path]) -> Path:
    """Path of the lock file inside ``directory``."""
    return _normalize_path(directory) / LOCKFILE_NAME


def lock_exists(directory: Union[str, os.PathLike, Path]) -> bool:
    return lockfile_path(directory).is_file()


def parse_lock(text: str, source: str = LOCKFILE_NAME) -> LockRecord:
    """Parse lock file content.

    Raises:
        LockParseError: invalid JSON, non-object root, unsupported version,
            or a record that fails validation
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LockParseError(f"{source}: invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise LockParseError(f"{source}: expected a JSON object, got {type(data).__name__}")

    version = data.get("version")
    # bool is an int subclass; "version": true must not pass as 1
    if isinstance(version, bool) or version != LOCKFILE_VERSION:
        raise LockParseError(
            f"{source}: unsupported lockfile version {version!r} (expected {LOCKFILE_VERSION})"
        )

    try:
        return LockRecord.model_validate(data)
    except ValidationError as e:
        raise LockParseError(f"{source}: invalid lock record: {e}") from e


def read_lock(directory: Union[str, os.PathLike, Path]) -> Optional[LockRecord]:
    """Read the lock record from ``directory``; None when no lock file exists.

    Raises:
        LockParseError: if the file exists but cannot be parsed
    """
    path = lockfile_path(directory)
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise LockParseError(f"{path}: not valid UTF-8: {e}") from e
    return parse_lock(text, source=str(path))


def _atomic_write_text(path: Path, text: str) -> None:
    # Temp file in the same directory so os.replace stays on one filesystem.
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def write_lock(
    directory: Union[str, os.PathLike, Path],
    snapshot: ApiSurfaceSnapshot,
    hash: str,
    expected_hash: Optional[str] = _UNCHECKED,
) -> LockRecord:
    """Persist ``snapshot`` as the approved record, replacing any previous one.

    Args:
        directory: Directory holding ``ont.lock`` (created if missing)
        snapshot: The approved snapshot
        hash: Hash of ``snapshot``
        expected_hash: When given, the hash the caller believes is currently
            stored (None: no lock may exist yet). A different stored hash raises
            LockConflictError and nothing is written.

    Returns:
        The written LockRecord
    """
    directory = _normalize_path(directory)

    if expected_hash is not _UNCHECKED:
        current = read_lock(directory)
        found_hash = current.hash if current is not None else None
        if found_hash != expected_hash:
            raise LockConflictError(
                f"Lockfile changed since it was read: expected {expected_hash or '(no lock)'}, "
                f"found {found_hash or '(no lock)'}",
                expected_hash=expected_hash,
                found_hash=found_hash,
            )

    record = LockRecord(
        version=LOCKFILE_VERSION,
        hash=hash,
        approved_at=datetime.now(timezone.utc),
        snapshot=snapshot,
    )

    directory.mkdir(parents=True, exist_ok=True)
    path = lockfile_path(directory)
    _atomic_write_text(path, lock_dumps(record.to_wire()))
    logger.info("Wrote %s (hash %s)", path, hash)
    return record


def verify_lock(record: LockRecord) -> None:
    """Check that the stored hash matches the stored snapshot.

    Raises:
        LockParseError: if the record was edited by hand or corrupted
    """
    computed = hash_snapshot(record.snapshot)
    if computed != record.hash:
        raise LockParseError(
            f"Lockfile hash {record.hash} does not match its snapshot (computed {computed})"
        )
