"""Error taxonomy for ontlock.

DefinitionError and LockParseError are fatal in every mode: the input itself
cannot be trusted. MissingLockError and LockMismatchError are the only errors
whose severity depends on the operating mode.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ontlock.kernel.diff import Changeset


class OntlockError(Exception):
    """Base class for all ontlock errors."""
    pass


class DefinitionError(OntlockError, ValueError):
    """Raised when the live API definition is structurally invalid."""
    pass


class SchemaConversionError(OntlockError, ValueError):
    """Raised when a single schema node cannot be converted to canonical form.

    Absorbed by the snapshot extractor, which substitutes an unknown placeholder.
    """
    pass


class LockParseError(OntlockError, ValueError):
    """Raised when the stored lock record is corrupt or has an unsupported version."""
    pass


class LockConflictError(OntlockError):
    """Raised when the lock changed on disk between reading it and approving."""

    def __init__(self, message: str, expected_hash: Optional[str], found_hash: Optional[str]):
        super().__init__(message)
        self.expected_hash = expected_hash
        self.found_hash = found_hash


class MissingLockError(OntlockError):
    """Raised in production mode when no lock record exists yet."""

    def __init__(self, message: str, path: Path, changeset: "Changeset"):
        super().__init__(message)
        self.path = path
        self.changeset = changeset


class LockMismatchError(OntlockError):
    """Raised in production mode when the live snapshot differs from the approved one."""

    def __init__(
        self,
        message: str,
        changeset: "Changeset",
        stored_hash: str,
        current_hash: str,
    ):
        super().__init__(message)
        self.changeset = changeset
        self.stored_hash = stored_hash
        self.current_hash = current_hash


class HandlerLoadError(OntlockError):
    """Raised when a handler reference cannot be resolved to a callable."""

    def __init__(self, message: str, ref: str):
        super().__init__(message)
        self.ref = ref
