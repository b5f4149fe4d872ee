"""Snapshot extraction: the security-relevant projection of an API definition.

Captured per function: description, access list, entities, input/output schema
trees, field references and whether identity-context fields are present.

NOT captured (these may change freely without re-approval):
- resolver/handler references
- per-environment configuration
- the auth function
- access group and entity descriptions
"""

import logging
import math
from typing import TYPE_CHECKING, Any, Dict, List, Tuple, get_origin

from pydantic import TypeAdapter
from pydantic.errors import PydanticUndefinedAnnotation, PydanticUserError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from ontlock.contracts import ApiSurfaceSnapshot, FieldReference, FunctionShape
from ontlock.errors import SchemaConversionError
from ontlock.kernel.hash_utils import CanonicalizationError, canonicalize_json, hash_snapshot
from ontlock.kernel.introspect import MISSING, WRAPPER_KINDS, SchemaKind, describe
from ontlock.markers import find_field_from, has_identity_context

if TYPE_CHECKING:
    from ontlock.definition import ApiDefinition

logger = logging.getLogger(__name__)

UNKNOWN_SCHEMA = {"type": "unknown"}
ROOT_PATH = "(root)"

_SCALAR_KEYWORDS = {
    "gt": "exclusiveMinimum",
    "ge": "minimum",
    "lt": "exclusiveMaximum",
    "le": "maximum",
    "multiple_of": "multipleOf",
    "min_length": "minLength",
    "max_length": "maxLength",
    "pattern": "pattern",
}
_ARRAY_KEYWORDS = {**_SCALAR_KEYWORDS, "min_length": "minItems", "max_length": "maxItems"}


def schema_to_tree(schema: Any, _models: Tuple[type, ...] = ()) -> Dict[str, Any]:
    """Render ``schema`` as a canonical JSON-Schema-like tree.

    A node that cannot be converted degrades to ``{"type": "unknown"}``; the rest
    of the tree is still rendered.
    """
    try:
        return _to_tree(schema, _models)
    except SchemaConversionError as e:
        logger.warning("Schema node degraded to unknown: %s", e)
        return dict(UNKNOWN_SCHEMA)


def _to_tree(schema: Any, models: Tuple[type, ...]) -> Dict[str, Any]:
    desc = describe(schema)
    kind = desc.kind

    if kind is SchemaKind.OBJECT:
        if desc.model is not None:
            if desc.model in models:
                return {"type": "object", "$recursive": desc.model.__name__}
            models = models + (desc.model,)
        properties = {}
        required = []
        for name, sub in desc.fields.items():
            properties[name] = schema_to_tree(sub, models)
            if describe(sub).kind not in (SchemaKind.OPTIONAL, SchemaKind.DEFAULT):
                required.append(name)
        tree = {"type": "object", "properties": properties, "required": sorted(required)}
    elif kind is SchemaKind.ARRAY:
        tree = {"type": "array", "items": schema_to_tree(desc.element, models)}
    elif kind is SchemaKind.MAPPING:
        tree = {"type": "object", "additionalProperties": schema_to_tree(desc.element, models)}
    elif kind is SchemaKind.NULLABLE:
        tree = {"anyOf": [schema_to_tree(desc.inner, models), {"type": "null"}]}
    elif kind is SchemaKind.UNION:
        tree = {"anyOf": [schema_to_tree(option, models) for option in desc.options]}
    elif kind is SchemaKind.TUPLE:
        tree = {
            "type": "array",
            "prefixItems": [schema_to_tree(item, models) for item in desc.options],
            "minItems": len(desc.options),
            "maxItems": len(desc.options),
        }
    elif kind is SchemaKind.OPTIONAL:
        # Absence is recorded by the parent's "required" list.
        tree = schema_to_tree(desc.inner, models)
    elif kind is SchemaKind.DEFAULT:
        tree = schema_to_tree(desc.inner, models)
        if desc.default is not MISSING:
            tree["default"] = _jsonable(desc.default)
    elif kind is SchemaKind.SCALAR:
        tree = {}
        if desc.type_name is not None:
            tree["type"] = desc.type_name
        if desc.format is not None:
            tree["format"] = desc.format
        if desc.enum is not None:
            tree["enum"] = [_jsonable(value) for value in desc.enum]
    else:
        tree = _library_json_schema(desc.source)
        if tree == UNKNOWN_SCHEMA:
            return tree

    keywords = _ARRAY_KEYWORDS if kind in (SchemaKind.ARRAY, SchemaKind.TUPLE) else _SCALAR_KEYWORDS
    for attr, value in desc.constraints.items():
        tree[keywords[attr]] = _jsonable(value)
    if desc.description:
        tree["description"] = desc.description
    return tree


def _library_json_schema(source: Any) -> Dict[str, Any]:
    """pydantic's own JSON Schema for an annotation with no structural branch.

    Types pydantic cannot represent either stay ``{"type": "unknown"}``.
    """
    if not (isinstance(source, type) or get_origin(source) is not None):
        return dict(UNKNOWN_SCHEMA)
    try:
        tree = TypeAdapter(source).json_schema()
    except (PydanticUserError, PydanticUndefinedAnnotation, TypeError) as e:
        logger.debug("No JSON Schema for %r: %s", source, e)
        return dict(UNKNOWN_SCHEMA)
    try:
        canonicalize_json(tree)
    except CanonicalizationError as e:
        raise SchemaConversionError(f"JSON Schema of {source!r} is not canonical: {e}") from e
    return tree


def _jsonable(value: Any) -> Any:
    """Convert a default/enum/constraint value into canonical-JSON-compatible form."""
    if isinstance(value, (set, frozenset)):
        # Set iteration order is not stable across processes.
        return sorted((_jsonable(item) for item in value), key=canonicalize_json)
    if isinstance(value, float) and not math.isfinite(value):
        raise SchemaConversionError(f"value {value!r} is not a finite number")
    try:
        converted = to_jsonable_python(value)
        canonicalize_json(converted)
    except (PydanticSerializationError, CanonicalizationError) as e:
        raise SchemaConversionError(f"value {value!r} is not JSON-compatible: {e}") from e
    return converted


def collect_field_references(
    schema: Any,
    path: str = "",
    _models: Tuple[type, ...] = (),
) -> List[FieldReference]:
    """Collect every field marked ``field_from(...)`` inside ``schema``.

    Paths use ``.`` for object nesting and ``[]`` for array elements. Optional,
    nullable and defaulted wrappers are transparent; union alternatives share
    the path of the union.
    """
    desc = describe(schema)
    references: List[FieldReference] = []

    marker = find_field_from(desc.markers)
    if marker is not None:
        references.append(FieldReference(path=path or ROOT_PATH, function_name=marker.function_name))

    if desc.kind is SchemaKind.OBJECT:
        if desc.model is not None:
            if desc.model in _models:
                return references
            _models = _models + (desc.model,)
        for name, sub in desc.fields.items():
            field_path = f"{path}.{name}" if path else name
            references.extend(collect_field_references(sub, field_path, _models))
    elif desc.kind in WRAPPER_KINDS:
        references.extend(collect_field_references(desc.inner, path, _models))
    elif desc.kind is SchemaKind.ARRAY:
        references.extend(collect_field_references(desc.element, f"{path}[]", _models))
    elif desc.kind is SchemaKind.UNION:
        for option in desc.options:
            references.extend(collect_field_references(option, path, _models))
    elif desc.kind is SchemaKind.TUPLE:
        for item in desc.options:
            references.extend(collect_field_references(item, f"{path}[]", _models))

    return references


def identity_context_fields(schema: Any) -> List[str]:
    """Names of top-level input fields injected from the caller's identity.

    A request layer uses these to inject values from the auth result and to hide
    the fields from externally exposed schemas.
    """
    desc = describe(schema)
    if desc.kind is not SchemaKind.OBJECT:
        return []
    return [name for name, sub in desc.fields.items() if _carries_identity_context(sub)]


def _carries_identity_context(schema: Any) -> bool:
    desc = describe(schema)
    while True:
        if has_identity_context(desc.markers):
            return True
        if desc.kind not in WRAPPER_KINDS:
            return False
        desc = describe(desc.inner)


def _unique_references(references: List[FieldReference]) -> List[FieldReference]:
    seen = set()
    unique = []
    for ref in references:
        key = (ref.path, ref.function_name)
        if key not in seen:
            seen.add(key)
            unique.append(ref)
    return unique


def extract_function_shape(fn: Any) -> FunctionShape:
    """Project one function definition onto its security-relevant shape."""
    inputs_schema = schema_to_tree(fn.inputs)
    outputs_schema = schema_to_tree(fn.outputs) if fn.outputs is not None else None
    references = _unique_references(collect_field_references(fn.inputs))
    return FunctionShape(
        description=fn.description,
        access=list(fn.access),
        entities=list(fn.entities),
        inputs_schema=inputs_schema,
        outputs_schema=outputs_schema,
        field_references=references or None,
        uses_identity_context=bool(identity_context_fields(fn.inputs)) or None,
    )


def extract_snapshot(definition: "ApiDefinition") -> ApiSurfaceSnapshot:
    """Extract the canonical, security-relevant snapshot of ``definition``.

    Every name list is sorted; the definition is not modified.
    """
    functions = {
        name: extract_function_shape(fn)
        for name, fn in definition.functions.items()
    }
    entities = sorted(definition.entities) if definition.entities is not None else None
    return ApiSurfaceSnapshot(
        name=definition.name,
        access_groups=sorted(definition.access_groups),
        entities=entities,
        functions=functions,
    )


def compute_snapshot(definition: "ApiDefinition") -> Tuple[ApiSurfaceSnapshot, str]:
    """Extract the snapshot and compute its hash in one step."""
    snapshot = extract_snapshot(definition)
    return snapshot, hash_snapshot(snapshot)
