"""Change-control gate: compare the live definition with the approved lock.

Evaluated once per process start, never per request.

    state           development        production
    NO_LOCK         warn, proceed      fail (MissingLockError)
    LOCK_MATCHES    proceed            proceed
    LOCK_MISMATCH   warn, proceed      fail (LockMismatchError)

DefinitionError and LockParseError propagate in every mode.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from ontlock._internal.reporting.changeset import format_changeset
from ontlock.codes import Mode
from ontlock.config import load_settings, resolve_mode
from ontlock.contracts import LockRecord
from ontlock.errors import LockMismatchError, MissingLockError
from ontlock.kernel.diff import Changeset, diff_snapshots
from ontlock.kernel.snapshot import compute_snapshot
from ontlock.lockfile import lockfile_path, read_lock, write_lock

if TYPE_CHECKING:
    from ontlock.definition import ApiDefinition
    from ontlock.review import Reviewer

logger = logging.getLogger(__name__)


class GateState(str, Enum):
    NO_LOCK = "no_lock"
    LOCK_MATCHES = "lock_matches"
    LOCK_MISMATCH = "lock_mismatch"


class GateAction(str, Enum):
    PROCEED = "proceed"
    WARN = "warn"
    FAIL = "fail"


@dataclass
class GateResult:
    """Outcome of a gate evaluation that did not fail."""
    state: GateState
    action: GateAction
    mode: Mode
    current_hash: str
    stored_hash: Optional[str]
    lock_path: Path
    changeset: Optional[Changeset] = None  # None when the lock matches
    approved: Optional[bool] = None  # set only when a reviewer was launched

    @property
    def ok(self) -> bool:
        return self.state is GateState.LOCK_MATCHES or bool(self.approved)


def evaluate_gate(lock_exists: bool, stored_hash: Optional[str], current_hash: str) -> GateState:
    if not lock_exists:
        return GateState.NO_LOCK
    if stored_hash == current_hash:
        return GateState.LOCK_MATCHES
    return GateState.LOCK_MISMATCH


def gate_action(state: GateState, mode: Mode) -> GateAction:
    """Decision table of the gate; production fails closed on any unapproved state."""
    if state is GateState.LOCK_MATCHES:
        return GateAction.PROCEED
    if mode is Mode.PRODUCTION:
        return GateAction.FAIL
    return GateAction.WARN


# Sentinel: take the expected stored hash from the changeset itself.
_FROM_CHANGESET: Any = object()


def approve_changeset(
    directory: Union[str, os.PathLike, Path],
    changeset: Changeset,
    expected_hash: Optional[str] = _FROM_CHANGESET,
) -> LockRecord:
    """Write the changeset's new snapshot as the approved lock.

    The write is refused with LockConflictError if the stored lock no longer
    carries ``expected_hash`` (by default the changeset's ``old_hash``), i.e.
    someone else approved in the meantime.
    """
    if expected_hash is _FROM_CHANGESET:
        expected_hash = changeset.old_hash
    return write_lock(
        directory,
        changeset.new_snapshot,
        changeset.new_hash,
        expected_hash=expected_hash,
    )


def check_lock(
    definition: "ApiDefinition",
    directory: Optional[Union[str, os.PathLike, Path]] = None,
    mode: Optional[Union[Mode, str]] = None,
    reviewer: Optional["Reviewer"] = None,
) -> GateResult:
    """Run the gate for ``definition`` against the lock in ``directory``.

    Args:
        definition: The validated live definition
        directory: Directory holding ``ont.lock`` (default: ONTLOCK_DIR or cwd)
        mode: Explicit mode; otherwise ONTLOCK_MODE, defaulting to production
        reviewer: Launched in development mode when the lock is missing or stale;
            an approval writes the lock

    Returns:
        GateResult describing a proceeding gate

    Raises:
        MissingLockError: production mode and no lock exists
        LockMismatchError: production mode and the lock is stale
        LockParseError: the lock file is corrupt (any mode)
    """
    if directory is None:
        directory = load_settings().lock_dir
    directory = Path(directory)
    mode = resolve_mode(mode)
    path = lockfile_path(directory)

    record = read_lock(directory)
    snapshot, current_hash = compute_snapshot(definition)
    stored_hash = record.hash if record is not None else None

    state = evaluate_gate(record is not None, stored_hash, current_hash)
    action = gate_action(state, mode)

    if state is GateState.LOCK_MATCHES:
        logger.info("Lockfile verified (hash %s)", current_hash)
        return GateResult(
            state=state,
            action=action,
            mode=mode,
            current_hash=current_hash,
            stored_hash=stored_hash,
            lock_path=path,
        )

    changeset = diff_snapshots(record.snapshot if record is not None else None, snapshot, old_hash=stored_hash)
    rendered = format_changeset(changeset)

    if state is GateState.NO_LOCK:
        message = f"No lockfile found at {path}. Run 'ontlock review' to approve the API surface."
    else:
        message = (
            f"API surface changed since last approval (stored {stored_hash}, current {current_hash}). "
            f"Run 'ontlock review' to approve the changes."
        )

    if action is GateAction.FAIL:
        # The exception text carries the full diff independent of the log level.
        logger.error("%s", message)
        detail = f"{message}\n{rendered}"
        if state is GateState.NO_LOCK:
            raise MissingLockError(detail, path=path, changeset=changeset)
        raise LockMismatchError(
            detail,
            changeset=changeset,
            stored_hash=stored_hash,
            current_hash=current_hash,
        )

    logger.warning("%s\n%s", message, rendered)

    approved = None
    if reviewer is not None:
        decision = reviewer.review(changeset, directory)
        approved = decision.approved
        if approved:
            approve_changeset(directory, changeset, expected_hash=stored_hash)
            logger.info("Changes approved, lockfile updated (hash %s)", current_hash)
        else:
            logger.warning("Changes rejected, lockfile left unchanged")

    return GateResult(
        state=state,
        action=action,
        mode=mode,
        current_hash=current_hash,
        stored_hash=stored_hash,
        lock_path=path,
        changeset=changeset,
        approved=approved,
    )
