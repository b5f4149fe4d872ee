"""Render changesets for operators (internal)."""

from typing import Any, Dict, List

from ontlock.codes import ChangeKind
from ontlock.kernel.diff import ChangeRecord, Changeset

_KIND_SYMBOLS = {
    ChangeKind.ADDED: "+",
    ChangeKind.REMOVED: "-",
    ChangeKind.MODIFIED: "~",
}


def _names(values: List[str]) -> str:
    return ", ".join(values) if values else "(none)"


def _format_function(record: ChangeRecord) -> List[str]:
    symbol = _KIND_SYMBOLS[record.kind]
    lines = [f"  {symbol} {record.name} ({record.kind.value})"]

    if record.kind is ChangeKind.ADDED:
        lines.append(f"      access: {_names(record.new_access or [])}")
        if record.new_description:
            lines.append(f"      description: {record.new_description}")
        return lines

    if record.kind is ChangeKind.REMOVED:
        lines.append(f"      access was: {_names(record.old_access or [])}")
        if record.old_description:
            lines.append(f"      description was: {record.old_description}")
        return lines

    if record.old_access is not None or record.new_access is not None:
        lines.append(
            f"      access: [{_names(record.old_access or [])}] -> [{_names(record.new_access or [])}]"
        )
    if record.old_description is not None or record.new_description is not None:
        lines.append(f"      description: {record.old_description!r} -> {record.new_description!r}")
    if record.old_entities is not None or record.new_entities is not None:
        lines.append(
            f"      entities: [{_names(record.old_entities or [])}] -> [{_names(record.new_entities or [])}]"
        )
    if record.inputs_changed:
        lines.append("      inputs schema changed")
    if record.outputs_changed:
        lines.append("      outputs schema changed")
    if record.field_references_changed:
        lines.append("      field references changed")
    if record.identity_context_changed:
        state = "now uses" if record.uses_identity_context else "no longer uses"
        lines.append(f"      {state} identity context")
    return lines


def format_changeset(changeset: Changeset) -> str:
    """Human-readable, categorized rendering of a changeset.

    Every category is listed; an operator must never see just "changed".
    """
    if not changeset.has_changes:
        return "No changes detected."

    lines: List[str] = []
    if changeset.is_first_run:
        lines.append("No lockfile found. Initial API surface:")
    else:
        lines.append(f"API surface changed ({changeset.old_hash} -> {changeset.new_hash}):")

    if changeset.old_name is not None or changeset.new_name is not None:
        lines.append(f"  API renamed: {changeset.old_name} -> {changeset.new_name}")

    for group in changeset.added_groups:
        lines.append(f"  + access group: {group}")
    for group in changeset.removed_groups:
        lines.append(f"  - access group: {group}")
    for entity in changeset.added_entities:
        lines.append(f"  + entity: {entity}")
    for entity in changeset.removed_entities:
        lines.append(f"  - entity: {entity}")

    if changeset.functions:
        lines.append("Functions:")
        for record in changeset.functions:
            lines.extend(_format_function(record))

    if len(lines) == 1:
        lines.append("  stored hash does not match the stored snapshot (no structural differences)")

    lines.append(f"New hash: {changeset.new_hash}")
    return "\n".join(lines)


def changeset_report(changeset: Changeset, include_snapshot: bool = False) -> Dict[str, Any]:
    """JSON-compatible report of a changeset.

    The new snapshot is large and already recorded in the lock on approval, so
    it is left out unless asked for.
    """
    report = changeset.to_wire()
    if not include_snapshot:
        report.pop("newSnapshot", None)
    report["summary"] = {
        "added": sum(1 for r in changeset.functions if r.kind is ChangeKind.ADDED),
        "removed": sum(1 for r in changeset.functions if r.kind is ChangeKind.REMOVED),
        "modified": sum(1 for r in changeset.functions if r.kind is ChangeKind.MODIFIED),
    }
    return report
