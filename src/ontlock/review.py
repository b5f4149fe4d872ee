"""Review workflow: present a changeset to a human and record the decision."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Protocol, TextIO, Union

from ontlock._internal.reporting.changeset import format_changeset
from ontlock.config import load_settings
from ontlock.gate import approve_changeset
from ontlock.kernel.diff import Changeset, diff_snapshots
from ontlock.kernel.snapshot import compute_snapshot
from ontlock.lockfile import read_lock, write_lock

if TYPE_CHECKING:
    from ontlock.definition import ApiDefinition


@dataclass(frozen=True)
class ReviewDecision:
    approved: bool


class Reviewer(Protocol):
    """Anything that can approve or reject a changeset."""

    def review(self, changeset: Changeset, directory: Path) -> ReviewDecision:
        ...


class ConsoleReviewer:
    """Ask for approval on the terminal.

    Blocks until the operator answers; anything but "y"/"yes" rejects.
    """

    PROMPT = "Approve these changes? [y/N] "

    def __init__(self, input_fn: Callable[[str], str] = input, out: Optional[TextIO] = None):
        self._input = input_fn
        self._out = out

    def review(self, changeset: Changeset, directory: Path) -> ReviewDecision:
        out = self._out if self._out is not None else sys.stdout
        print(format_changeset(changeset), file=out)
        print(f"Lockfile directory: {directory}", file=out)
        try:
            answer = self._input(self.PROMPT)
        except EOFError:
            # No terminal attached
            return ReviewDecision(approved=False)
        return ReviewDecision(approved=answer.strip().lower() in ("y", "yes"))


def run_review(
    definition: "ApiDefinition",
    directory: Optional[Union[str, os.PathLike, Path]] = None,
    print_only: bool = False,
    auto_approve: bool = False,
    reviewer: Optional[Reviewer] = None,
    out: Optional[TextIO] = None,
) -> int:
    """
    Compare the definition with the lock and drive approval.

    Exit codes:
    - print_only: 1 when approval is pending, 0 otherwise; never prompts or writes
    - auto_approve: writes the lock (including the initial one) and returns 0
    - interactive: 0 on approval (lock written), 1 on rejection, 0 when nothing is pending

    Raises:
        LockParseError: the existing lock file is corrupt
        LockConflictError: the lock changed while the reviewer was deciding
    """
    if print_only and auto_approve:
        raise ValueError("print_only and auto_approve are mutually exclusive")
    if directory is None:
        directory = load_settings().lock_dir
    directory = Path(directory)
    out = out if out is not None else sys.stdout

    record = read_lock(directory)
    snapshot, current_hash = compute_snapshot(definition)
    stored_hash = record.hash if record is not None else None
    changeset = diff_snapshots(record.snapshot if record is not None else None, snapshot, old_hash=stored_hash)
    # A stored hash that disagrees with its own snapshot still needs re-approval.
    pending = record is None or record.hash != current_hash

    if print_only:
        if pending:
            print(format_changeset(changeset), file=out)
            return 1
        print("[OK] No API surface changes detected.", file=out)
        return 0

    if auto_approve:
        if not pending:
            print("[OK] No API surface changes detected.", file=out)
            return 0
        print(format_changeset(changeset), file=out)
        write_lock(directory, snapshot, current_hash, expected_hash=stored_hash)
        print(f"[OK] Changes approved. Lockfile updated ({current_hash}).", file=out)
        return 0

    if not pending:
        print("[OK] No API surface changes detected.", file=out)
        return 0

    reviewer = reviewer if reviewer is not None else ConsoleReviewer(out=out)
    decision = reviewer.review(changeset, directory)
    if not decision.approved:
        print("Changes rejected. Lockfile left unchanged.", file=out)
        return 1
    approve_changeset(directory, changeset, expected_hash=stored_hash)
    print(f"[OK] Changes approved. Lockfile updated ({current_hash}).", file=out)
    return 0
