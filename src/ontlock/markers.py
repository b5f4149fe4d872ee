"""Field markers attached by the configuration layer.

Markers ride on pydantic field metadata (``Annotated[...]``), so they survive
inside ``list[...]``, ``Optional[...]`` and defaulted fields and are visible to
the schema introspector without touching pydantic internals.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Iterable, Optional


@dataclass(frozen=True)
class FieldFrom:
    """Marks a field whose valid values come from another function.

    The referenced function should return a list of ``{"value": ..., "label": ...}``
    options. A source function with empty inputs is fetched in bulk; one with a
    ``query`` input is treated as an autocomplete source.
    """
    function_name: str


@dataclass(frozen=True)
class IdentityContext:
    """Marks a field injected from the caller's authenticated identity.

    Such fields are populated from the auth result, never supplied by the caller,
    and hidden from externally exposed schemas.
    """


def field_from(function_name: str, base: Any = str) -> Any:
    """Declare a field whose options come from ``function_name``.

    Example::

        class CreateUserInputs(BaseModel):
            name: str
            status: field_from("getUserStatuses")
    """
    return Annotated[base, FieldFrom(function_name)]


def identity_context(schema: Any) -> Any:
    """Declare a field whose value is injected from the authenticated identity.

    Example::

        class EditPostInputs(BaseModel):
            post_id: str
            current_user: identity_context(CurrentUser)
    """
    return Annotated[schema, IdentityContext()]


def find_field_from(markers: Iterable[Any]) -> Optional[FieldFrom]:
    """Return the first FieldFrom marker in ``markers``, if any."""
    for marker in markers:
        if isinstance(marker, FieldFrom):
            return marker
    return None


def has_identity_context(markers: Iterable[Any]) -> bool:
    return any(isinstance(marker, IdentityContext) for marker in markers)
