"""ontlock: change control for the security-relevant surface of an API."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("ontlock")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from ontlock.api import diff, hash_definition, snapshot
from ontlock.codes import ChangeKind, Mode
from ontlock.contracts import ApiSurfaceSnapshot, LockRecord
from ontlock.definition import ApiDefinition, define_api
from ontlock.errors import (
    DefinitionError,
    LockConflictError,
    LockMismatchError,
    LockParseError,
    MissingLockError,
    OntlockError,
)
from ontlock.gate import check_lock
from ontlock.kernel.diff import Changeset, ChangeRecord
from ontlock.markers import field_from, identity_context
from ontlock.review import run_review
from ontlock.runtime import Runtime, prepare_runtime

__all__ = [
    "__version__",
    "define_api",
    "field_from",
    "identity_context",
    "snapshot",
    "hash_definition",
    "diff",
    "check_lock",
    "run_review",
    "prepare_runtime",
    "Runtime",
    "ApiDefinition",
    "ApiSurfaceSnapshot",
    "LockRecord",
    "Changeset",
    "ChangeRecord",
    "ChangeKind",
    "Mode",
    "OntlockError",
    "DefinitionError",
    "LockParseError",
    "LockMismatchError",
    "MissingLockError",
    "LockConflictError",
]
