"""Public record models for ontlock: snapshots and lock records.

Field names are snake_case in Python and camelCase on the wire
(``accessGroups``, ``inputsSchema``, ``approvedAt`` ...).
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


HASH_PATTERN = re.compile(r"^[0-9a-f]{16}$")


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump to the persisted (camelCase, absent-optionals-omitted) form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FieldReference(_WireModel):
    """An input field that draws its option set from another function."""
    path: str  # "status", "filters.country", "tags[]"
    function_name: str


class FunctionShape(_WireModel):
    """Security-relevant shape of a single function."""
    description: str
    access: List[str]
    entities: List[str] = Field(default_factory=list)
    inputs_schema: Dict[str, Any]
    outputs_schema: Optional[Dict[str, Any]] = None
    field_references: Optional[List[FieldReference]] = None
    uses_identity_context: Optional[bool] = None

    @field_validator("access", "entities")
    @classmethod
    def sort_names(cls, v: List[str]) -> List[str]:
        """Canonicalize name lists to lexicographic order."""
        return sorted(v)

    @field_validator("field_references")
    @classmethod
    def sort_references(cls, v: Optional[List[FieldReference]]) -> Optional[List[FieldReference]]:
        """Canonicalize references by (path, function_name); empty collapses to None."""
        if not v:
            return None
        return sorted(v, key=lambda ref: (ref.path, ref.function_name))

    @field_validator("uses_identity_context")
    @classmethod
    def drop_false(cls, v: Optional[bool]) -> Optional[bool]:
        # Only presence is recorded; False and absent hash the same.
        return True if v else None


class ApiSurfaceSnapshot(_WireModel):
    """Canonical, security-relevant projection of an API definition."""
    name: str
    access_groups: List[str]
    entities: Optional[List[str]] = None
    functions: Dict[str, FunctionShape]

    @field_validator("access_groups")
    @classmethod
    def sort_groups(cls, v: List[str]) -> List[str]:
        return sorted(v)

    @field_validator("entities")
    @classmethod
    def sort_entities(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return sorted(v) if v is not None else None


class LockRecord(_WireModel):
    """The single currently-approved snapshot.

    Created only by explicit approval and overwritten wholesale on each approval.
    """
    version: int
    hash: str
    approved_at: datetime
    snapshot: ApiSurfaceSnapshot = Field(alias="ontology")

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        if not HASH_PATTERN.match(v):
            raise ValueError(f"hash must be 16 lowercase hex characters, got {v!r}")
        return v
