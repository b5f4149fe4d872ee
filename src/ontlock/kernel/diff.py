"""Structural diff between two API surface snapshots."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ontlock.codes import ChangeKind
from ontlock.contracts import ApiSurfaceSnapshot, FunctionShape
from ontlock.kernel.hash_utils import canonicalize_json, hash_snapshot


class ChangeRecord(BaseModel):
    """What changed about a single function.

    Only the differing sub-fields are populated; everything else stays None so a
    presentation layer can render a minimal diff.
    """
    name: str
    kind: ChangeKind
    old_access: Optional[List[str]] = None
    new_access: Optional[List[str]] = None
    old_description: Optional[str] = None
    new_description: Optional[str] = None
    old_entities: Optional[List[str]] = None
    new_entities: Optional[List[str]] = None
    inputs_changed: Optional[bool] = None
    outputs_changed: Optional[bool] = None
    field_references_changed: Optional[bool] = None
    identity_context_changed: Optional[bool] = None
    uses_identity_context: Optional[bool] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Changeset(BaseModel):
    """Categorized result of comparing a stored snapshot with the live one."""
    has_changes: bool
    added_groups: List[str] = Field(default_factory=list)
    removed_groups: List[str] = Field(default_factory=list)
    added_entities: List[str] = Field(default_factory=list)
    removed_entities: List[str] = Field(default_factory=list)
    functions: List[ChangeRecord] = Field(default_factory=list)
    old_name: Optional[str] = None
    new_name: Optional[str] = None
    old_hash: Optional[str] = None  # None on first run
    new_snapshot: ApiSurfaceSnapshot
    new_hash: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    @property
    def is_first_run(self) -> bool:
        return self.old_hash is None

    def get_function_change(self, name: str) -> Optional[ChangeRecord]:
        for record in self.functions:
            if record.name == name:
                return record
        return None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _canonical_equal(a: Any, b: Any) -> bool:
    # Schema trees compare by canonical serialization, never by identity or key order.
    return canonicalize_json(a) == canonicalize_json(b)


def _references(shape: FunctionShape) -> list:
    return [ref.to_wire() for ref in (shape.field_references or [])]


def _compare_functions(name: str, old: FunctionShape, new: FunctionShape) -> Optional[ChangeRecord]:
    """Compare two shapes of the same function; None when nothing differs."""
    record = ChangeRecord(name=name, kind=ChangeKind.MODIFIED)
    changed = False

    if old.access != new.access:
        record.old_access = old.access
        record.new_access = new.access
        changed = True

    if old.description != new.description:
        record.old_description = old.description
        record.new_description = new.description
        changed = True

    if old.entities != new.entities:
        record.old_entities = old.entities
        record.new_entities = new.entities
        changed = True

    if not _canonical_equal(old.inputs_schema, new.inputs_schema):
        record.inputs_changed = True
        changed = True

    if not _canonical_equal(old.outputs_schema, new.outputs_schema):
        record.outputs_changed = True
        changed = True

    if not _canonical_equal(_references(old), _references(new)):
        record.field_references_changed = True
        changed = True

    if bool(old.uses_identity_context) != bool(new.uses_identity_context):
        record.identity_context_changed = True
        record.uses_identity_context = bool(new.uses_identity_context)
        changed = True

    return record if changed else None


def diff_snapshots(
    old: Optional[ApiSurfaceSnapshot],
    new: ApiSurfaceSnapshot,
    old_hash: Optional[str] = None,
) -> Changeset:
    """
    Compute the changeset between the approved snapshot and the live one.

    ``old_hash`` is the hash stored alongside ``old`` (default: recomputed from
    ``old``). A stored hash that disagrees with the live hash always counts as a
    change, even when no structural difference explains it.

    ``old`` is None on first run: every access group, entity and function is
    reported as added and ``has_changes`` is True unconditionally.

    Group and entity differences use set membership, not list order. Access
    groups are never inferred from function usage: a group is removed only when
    it is absent from the new snapshot's ``access_groups``.
    """
    new_hash = hash_snapshot(new)

    if old is None:
        functions = [
            ChangeRecord(
                name=name,
                kind=ChangeKind.ADDED,
                new_access=shape.access,
                new_description=shape.description,
            )
            for name, shape in new.functions.items()
        ]
        return Changeset(
            has_changes=True,
            added_groups=list(new.access_groups),
            added_entities=list(new.entities or []),
            functions=functions,
            new_snapshot=new,
            new_hash=new_hash,
        )

    if old_hash is None:
        old_hash = hash_snapshot(old)

    # Access group changes
    old_groups = set(old.access_groups)
    new_groups = set(new.access_groups)
    added_groups = [g for g in new.access_groups if g not in old_groups]
    removed_groups = [g for g in old.access_groups if g not in new_groups]

    # Entity changes
    old_entities = set(old.entities or [])
    new_entities = set(new.entities or [])
    added_entities = [e for e in (new.entities or []) if e not in old_entities]
    removed_entities = [e for e in (old.entities or []) if e not in new_entities]

    # Function changes: new snapshot order (added or modified), then removed
    functions: List[ChangeRecord] = []
    for name, shape in new.functions.items():
        if name not in old.functions:
            functions.append(ChangeRecord(
                name=name,
                kind=ChangeKind.ADDED,
                new_access=shape.access,
                new_description=shape.description,
            ))
            continue
        record = _compare_functions(name, old.functions[name], shape)
        if record is not None:
            functions.append(record)

    for name, shape in old.functions.items():
        if name not in new.functions:
            functions.append(ChangeRecord(
                name=name,
                kind=ChangeKind.REMOVED,
                old_access=shape.access,
                old_description=shape.description,
            ))

    renamed = old.name != new.name

    has_changes = bool(
        added_groups
        or removed_groups
        or added_entities
        or removed_entities
        or functions
        or renamed
        or old_hash != new_hash
    )

    return Changeset(
        has_changes=has_changes,
        added_groups=added_groups,
        removed_groups=removed_groups,
        added_entities=added_entities,
        removed_entities=removed_entities,
        functions=functions,
        old_name=old.name if renamed else None,
        new_name=new.name if renamed else None,
        old_hash=old_hash,
        new_snapshot=new,
        new_hash=new_hash,
    )
