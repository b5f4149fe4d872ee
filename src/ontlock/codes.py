"""Enumerated codes for ontlock.

These constants prevent stringly-typed change kinds and modes and ensure
client code uses the correct values.
"""

from enum import Enum


class ChangeKind(str, Enum):
    """Kind of change a single function went through between two snapshots."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class Mode(str, Enum):
    """Operating mode of the change-control gate.

    development: unapproved changes are reported and the process continues.
    production: unapproved changes are fatal.
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
