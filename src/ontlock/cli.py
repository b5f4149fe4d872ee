"""ontlock CLI: review, check and inspect the approved API surface."""

import argparse
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path


def main():
    """Main CLI entry point for ontlock commands."""
    # Get version for --version argument (handle PackageNotFoundError)
    try:
        ontlock_version = get_version("ontlock")
    except PackageNotFoundError:
        ontlock_version = "dev"

    parser = argparse.ArgumentParser(
        prog="ontlock",
        description="ontlock: Change control for the security-relevant surface of an API"
    )
    parser.add_argument("--version", action="version", version=f"ontlock {ontlock_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # review command
    review_parser = subparsers.add_parser(
        "review",
        help="Review and approve API surface changes",
        parents=[parent_parser]
    )
    review_parser.add_argument(
        "--definition",
        required=True,
        help="API definition reference: 'package.module:attr' or 'path/to/file.py:attr'"
    )
    review_parser.add_argument(
        "--dir",
        dest="lock_dir",
        type=Path,
        default=None,
        help="Directory holding ont.lock (defaults to ONTLOCK_DIR or the current directory)"
    )
    review_mode = review_parser.add_mutually_exclusive_group()
    review_mode.add_argument(
        "--auto-approve",
        action="store_true",
        help="Approve changes without prompting (for CI/scripts)"
    )
    review_mode.add_argument(
        "--print-only",
        action="store_true",
        help="Print the diff and exit 1 if approval is pending, without prompting"
    )

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Run the startup gate against ont.lock",
        parents=[parent_parser]
    )
    check_parser.add_argument(
        "--definition",
        required=True,
        help="API definition reference: 'package.module:attr' or 'path/to/file.py:attr'"
    )
    check_parser.add_argument(
        "--dir",
        dest="lock_dir",
        type=Path,
        default=None,
        help="Directory holding ont.lock (defaults to ONTLOCK_DIR or the current directory)"
    )
    check_parser.add_argument(
        "--mode",
        choices=["development", "production"],
        default=None,
        help="Gate mode (defaults to ONTLOCK_MODE, then production)"
    )
    check_parser.add_argument(
        "--load-handlers",
        action="store_true",
        help="Also resolve every function's handler reference"
    )

    # hash command
    hash_parser = subparsers.add_parser(
        "hash",
        help="Print the hash of the live API surface",
        parents=[parent_parser]
    )
    hash_parser.add_argument(
        "--definition",
        required=True,
        help="API definition reference: 'package.module:attr' or 'path/to/file.py:attr'"
    )
    hash_parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the canonical snapshot together with its hash"
    )

    # diff command
    diff_parser = subparsers.add_parser(
        "diff",
        help="Compare two lock files or snapshot JSON files",
        parents=[parent_parser]
    )
    diff_parser.add_argument(
        "--from",
        dest="old_path",
        type=Path,
        required=True,
        help="Path to the old lock file or snapshot"
    )
    diff_parser.add_argument(
        "--to",
        dest="new_path",
        type=Path,
        required=True,
        help="Path to the new lock file or snapshot"
    )
    diff_parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the changeset as JSON"
    )

    # verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Check that ont.lock parses and its hash matches its snapshot",
        parents=[parent_parser]
    )
    verify_parser.add_argument(
        "--dir",
        dest="lock_dir",
        type=Path,
        default=None,
        help="Directory holding ont.lock (defaults to ONTLOCK_DIR or the current directory)"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Lazy imports: keep --help and --version free of pydantic import cost
    from ontlock.config import load_settings
    from ontlock.errors import OntlockError
    from ontlock.log import configure_logging

    settings = load_settings()
    configure_logging("ERROR" if args.quiet else settings.log_level)
    lock_dir = getattr(args, "lock_dir", None) or settings.lock_dir

    if args.command == "review":
        from ontlock.api import load_definition
        from ontlock.review import run_review

        try:
            definition = load_definition(args.definition, base_dir=Path.cwd())
            exit_code = run_review(
                definition,
                lock_dir,
                print_only=args.print_only,
                auto_approve=args.auto_approve,
            )
            sys.exit(exit_code)
        except (OntlockError, FileNotFoundError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == "check":
        from ontlock._internal.reporting.changeset import format_changeset
        from ontlock.api import load_definition
        from ontlock.errors import LockMismatchError, MissingLockError
        from ontlock.runtime import prepare_runtime

        try:
            definition = load_definition(args.definition, base_dir=Path.cwd())
            runtime = prepare_runtime(
                definition,
                lock_dir,
                mode=args.mode,
                load_handlers=args.load_handlers,
            )
        except (MissingLockError, LockMismatchError) as e:
            # The message includes the categorized diff
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except (OntlockError, FileNotFoundError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        result = runtime.gate_result
        if result.changeset is not None and not logging.getLogger("ontlock.gate").isEnabledFor(logging.WARNING):
            # Pending changes are shown even when the gate warning is filtered out
            print(format_changeset(result.changeset), file=sys.stderr)
        if not args.quiet:
            print(f"[OK] Gate {result.action.value} ({result.mode.value} mode)")
            print(f"  State: {result.state.value}")
            print(f"  Hash: {result.current_hash}")
            if args.load_handlers:
                print(f"  Handlers: {len(runtime.handlers)}")
    elif args.command == "hash":
        from ontlock._internal.canonical_json import canonical_dumps
        from ontlock.api import load_definition
        from ontlock.kernel.snapshot import compute_snapshot

        try:
            definition = load_definition(args.definition, base_dir=Path.cwd())
            snapshot, hash_value = compute_snapshot(definition)
        except OntlockError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        if args.as_json:
            print(canonical_dumps({"hash": hash_value, "ontology": snapshot.to_wire()}))
        else:
            print(hash_value)
    elif args.command == "diff":
        from ontlock._internal.canonical_json import canonical_dumps
        from ontlock._internal.reporting.changeset import changeset_report, format_changeset
        from ontlock.api import diff

        try:
            changeset = diff(args.old_path, args.new_path)
        except (OntlockError, FileNotFoundError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        if args.as_json:
            print(canonical_dumps(changeset_report(changeset)))
        elif not args.quiet:
            print(format_changeset(changeset))
        sys.exit(1 if changeset.has_changes else 0)
    elif args.command == "verify":
        from ontlock.lockfile import lockfile_path, read_lock, verify_lock

        try:
            record = read_lock(lock_dir)
            if record is None:
                print(f"Error: No lockfile found at {lockfile_path(lock_dir)}", file=sys.stderr)
                sys.exit(1)
            verify_lock(record)
        except OntlockError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        if not args.quiet:
            print("[OK] Lockfile verified")
            print(f"  Path: {lockfile_path(lock_dir)}")
            print(f"  Hash: {record.hash}")
            print(f"  Approved at: {record.approved_at.isoformat()}")
            print(f"  Functions: {len(record.snapshot.functions)}")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
