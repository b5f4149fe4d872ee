"""Schema introspection across pydantic major versions.

``describe()`` turns an opaque schema object (a pydantic model class, a pydantic
field, or a typing annotation) into a ``SchemaDescription``: a kind plus the
kind-specific children. Callers never look at pydantic internals themselves.

All library-specific knowledge lives in the adapter branches below, one per
supported pydantic major version:

- v2: model classes expose ``model_fields`` (name -> ``FieldInfo``); a
  ``FieldInfo`` carries ``annotation``, ``metadata`` and ``is_required()``.
- v1 (also ``pydantic.v1``): model classes expose ``__fields__``
  (name -> ``ModelField``); a ``ModelField`` carries ``outer_type_``,
  ``required`` and ``field_info``.

Stdlib dataclasses and ``TypedDict``s describe as objects, fixed-length tuples
as ``tuple``. Any other unrecognized annotation describes as ``unknown`` with
the annotation kept in ``source``, so a renderer can hand it to pydantic.

Capability checks are duck-typed so upgrades touch this module only.
``describe()`` never raises: unrecognized shapes describe as ``unknown``.
"""

import collections.abc
import dataclasses
import enum
import logging
import types
import typing
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from pathlib import PurePath
from typing import (
    Annotated, Any, Dict, Iterable, Literal, Optional, Tuple, Union,
    get_args, get_origin, get_type_hints, is_typeddict,
)
from uuid import UUID

logger = logging.getLogger(__name__)


class SchemaKind(str, enum.Enum):
    OBJECT = "object"
    ARRAY = "array"
    MAPPING = "mapping"
    OPTIONAL = "optional"
    NULLABLE = "nullable"
    DEFAULT = "default"
    UNION = "union"
    TUPLE = "tuple"
    SCALAR = "scalar"
    UNKNOWN = "unknown"


WRAPPER_KINDS = (SchemaKind.OPTIONAL, SchemaKind.NULLABLE, SchemaKind.DEFAULT)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class SchemaDescription:
    """Structural description of one schema node.

    - object: ``fields`` maps field name -> sub-schema, in declaration order
    - array / mapping: ``element`` is the item (or value) sub-schema
    - optional / nullable / default: ``inner`` is the wrapped sub-schema
    - union: ``options`` holds the non-null alternatives
    - tuple: ``options`` holds the positional item schemas
    - scalar: ``type_name`` (None means "any value"), ``format``, ``enum``
    """
    kind: SchemaKind
    fields: Dict[str, Any] = field(default_factory=dict)
    element: Any = None
    inner: Any = None
    options: Tuple[Any, ...] = ()
    markers: Tuple[Any, ...] = ()
    type_name: Optional[str] = None
    format: Optional[str] = None
    enum: Optional[Tuple[Any, ...]] = None
    constraints: Dict[str, Any] = field(default_factory=dict)
    default: Any = MISSING
    description: Optional[str] = None
    model: Optional[type] = None  # object kind only, identity for cycle detection
    source: Any = None  # unknown kind only: the unrecognized annotation


UNKNOWN = SchemaDescription(kind=SchemaKind.UNKNOWN)

# Attribute names understood as value constraints, whichever object carries them
# (annotated_types.MaxLen, pydantic general metadata, v1 FieldInfo, ...).
CONSTRAINT_ATTRS = ("gt", "ge", "lt", "le", "multiple_of", "min_length", "max_length", "pattern")
_V1_CONSTRAINT_ALIASES = {"regex": "pattern", "min_items": "min_length", "max_items": "max_length"}

# Checked in order: bool before int, datetime before date.
_SCALAR_TYPES: Tuple[Tuple[type, str, Optional[str]], ...] = (
    (bool, "boolean", None),
    (int, "integer", None),
    (float, "number", None),
    (Decimal, "number", None),
    (str, "string", None),
    (bytes, "string", "binary"),
    (datetime, "string", "date-time"),
    (date, "string", "date"),
    (time, "string", "time"),
    (timedelta, "string", "duration"),
    (UUID, "string", "uuid"),
    (PurePath, "string", "path"),
)

_UNION_ORIGINS = (Union, types.UnionType)
_ARRAY_ORIGINS = (
    list, set, frozenset,
    collections.abc.Sequence, collections.abc.MutableSequence,
    collections.abc.Set, collections.abc.MutableSet, collections.abc.Iterable,
)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)
# typing.Required/NotRequired exist from Python 3.11
_TYPEDDICT_QUALIFIERS = tuple(
    q for q in (getattr(typing, "Required", None), getattr(typing, "NotRequired", None)) if q is not None
)


@dataclass(frozen=True)
class _FieldCore:
    """A field's annotation plus the metadata pydantic peeled off it."""
    annotation: Any
    metadata: Tuple[Any, ...] = ()
    description: Optional[str] = None
    constraints: Dict[str, Any] = field(default_factory=dict)


def describe(schema: Any) -> SchemaDescription:
    """Describe ``schema`` structurally. Never raises."""
    try:
        return _describe(schema)
    except Exception:
        logger.debug("Unrecognized schema shape %r", schema, exc_info=True)
        return UNKNOWN


def is_object_schema(schema: Any) -> bool:
    return describe(schema).kind is SchemaKind.OBJECT


def _describe(schema: Any) -> SchemaDescription:
    if isinstance(schema, SchemaDescription):
        return schema
    if isinstance(schema, _FieldCore):
        desc = _describe(schema.annotation)
        desc = _merge_metadata(desc, schema.metadata, schema.description)
        if schema.constraints:
            desc = dataclasses.replace(desc, constraints={**desc.constraints, **schema.constraints})
        return desc
    if get_origin(schema) is not None:
        return _describe_annotation(schema)
    if _is_v2_model(schema):
        return _describe_v2_model(schema)
    if _is_v1_model(schema):
        return _describe_v1_model(schema)
    if _is_v2_field(schema):
        return _describe_v2_field(schema)
    if _is_v1_field(schema):
        return _describe_v1_field(schema)
    return _describe_annotation(schema)


# --- pydantic v2 -----------------------------------------------------------

def _v2_fields(obj: Any) -> Optional[Dict[str, Any]]:
    # BaseModel subclasses expose model_fields; pydantic dataclasses only __pydantic_fields__.
    for attr in ("model_fields", "__pydantic_fields__"):
        fields = getattr(obj, attr, None)
        if isinstance(fields, dict):
            return fields
    return None


def _is_v2_model(obj: Any) -> bool:
    return isinstance(obj, type) and _v2_fields(obj) is not None


def _is_v2_field(obj: Any) -> bool:
    return (
        not isinstance(obj, type)
        and hasattr(obj, "annotation")
        and hasattr(obj, "metadata")
        and callable(getattr(obj, "is_required", None))
    )


def _describe_v2_model(model: type) -> SchemaDescription:
    fields = {}
    for name, info in _v2_fields(model).items():
        fields[info.alias or name] = info
    return SchemaDescription(kind=SchemaKind.OBJECT, fields=fields, model=model)


def _describe_v2_field(info: Any) -> SchemaDescription:
    core = _FieldCore(
        annotation=info.annotation,
        metadata=tuple(info.metadata),
        description=info.description,
    )
    if info.is_required():
        return _describe(core)
    if info.default_factory is not None:
        # Factories are not called: their result is not part of the declared shape.
        return SchemaDescription(kind=SchemaKind.DEFAULT, inner=core)
    if info.default is None:
        return SchemaDescription(kind=SchemaKind.OPTIONAL, inner=core)
    return SchemaDescription(kind=SchemaKind.DEFAULT, inner=core, default=info.default)


# --- pydantic v1 -----------------------------------------------------------

def _is_v1_model(obj: Any) -> bool:
    return isinstance(obj, type) and isinstance(getattr(obj, "__fields__", None), dict)


def _is_v1_field(obj: Any) -> bool:
    return (
        not isinstance(obj, type)
        and hasattr(obj, "outer_type_")
        and hasattr(obj, "field_info")
        and hasattr(obj, "required")
    )


def _describe_v1_model(model: type) -> SchemaDescription:
    fields = {}
    for name, model_field in model.__fields__.items():
        fields[getattr(model_field, "alias", None) or name] = model_field
    return SchemaDescription(kind=SchemaKind.OBJECT, fields=fields, model=model)


def _describe_v1_field(model_field: Any) -> SchemaDescription:
    info = model_field.field_info
    annotation = getattr(model_field, "annotation", None) or model_field.outer_type_
    constraints = {}
    for attr in CONSTRAINT_ATTRS + tuple(_V1_CONSTRAINT_ALIASES):
        value = getattr(info, attr, None)
        if value is not None:
            constraints[_V1_CONSTRAINT_ALIASES.get(attr, attr)] = value
    core = _FieldCore(
        annotation=annotation,
        description=getattr(info, "description", None),
        constraints=constraints,
    )
    if model_field.required is True:
        return _describe(core)
    if getattr(model_field, "default_factory", None) is not None:
        return SchemaDescription(kind=SchemaKind.DEFAULT, inner=core)
    if model_field.default is None:
        return SchemaDescription(kind=SchemaKind.OPTIONAL, inner=core)
    return SchemaDescription(kind=SchemaKind.DEFAULT, inner=core, default=model_field.default)


# --- typing annotations ----------------------------------------------------

def _describe_annotation(tp: Any) -> SchemaDescription:
    origin = get_origin(tp)
    args = get_args(tp)

    if origin is Annotated:
        return _merge_metadata(_describe(args[0]), args[1:], None)

    if origin in _UNION_ORIGINS:
        non_null = tuple(arg for arg in args if arg is not type(None))
        if len(non_null) < len(args):
            inner = non_null[0] if len(non_null) == 1 else Union[non_null]
            return SchemaDescription(kind=SchemaKind.NULLABLE, inner=inner)
        return SchemaDescription(kind=SchemaKind.UNION, options=non_null)

    if origin is Literal:
        return SchemaDescription(
            kind=SchemaKind.SCALAR,
            type_name=_common_type_name(args),
            enum=tuple(args),
        )

    if origin in _TYPEDDICT_QUALIFIERS:
        return _describe(args[0])

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return SchemaDescription(kind=SchemaKind.ARRAY, element=args[0])
        if args == ((),):  # Tuple[()] before Python 3.11
            args = ()
        return SchemaDescription(kind=SchemaKind.TUPLE, options=tuple(args))

    if origin in _ARRAY_ORIGINS:
        return SchemaDescription(kind=SchemaKind.ARRAY, element=args[0] if args else Any)

    if origin in _MAPPING_ORIGINS:
        return SchemaDescription(kind=SchemaKind.MAPPING, element=args[1] if len(args) == 2 else Any)

    if origin is not None:
        return _unknown(tp)

    if tp is Any:
        return SchemaDescription(kind=SchemaKind.SCALAR)
    if tp is None or tp is type(None):
        return SchemaDescription(kind=SchemaKind.SCALAR, type_name="null")
    if tp in (list, set, frozenset, tuple):
        return SchemaDescription(kind=SchemaKind.ARRAY, element=Any)
    if tp is dict:
        return SchemaDescription(kind=SchemaKind.MAPPING, element=Any)
    if hasattr(tp, "__supertype__"):  # typing.NewType
        return _describe(tp.__supertype__)
    if isinstance(tp, type):
        if dataclasses.is_dataclass(tp):
            return _describe_dataclass(tp)
        if is_typeddict(tp):
            return _describe_typeddict(tp)
        if issubclass(tp, enum.Enum):
            values = tuple(member.value for member in tp)
            return SchemaDescription(
                kind=SchemaKind.SCALAR,
                type_name=_common_type_name(values),
                enum=values,
            )
        for scalar_type, type_name, fmt in _SCALAR_TYPES:
            if issubclass(tp, scalar_type):
                return SchemaDescription(kind=SchemaKind.SCALAR, type_name=type_name, format=fmt)
    return _unknown(tp)


def _unknown(tp: Any) -> SchemaDescription:
    return dataclasses.replace(UNKNOWN, source=tp)


def _describe_dataclass(tp: type) -> SchemaDescription:
    # get_type_hints resolves string annotations through sys.modules[tp.__module__].
    hints = get_type_hints(tp, include_extras=True)
    fields = {}
    for dc_field in dataclasses.fields(tp):
        annotation = hints.get(dc_field.name, dc_field.type)
        if dc_field.default_factory is not dataclasses.MISSING:
            fields[dc_field.name] = SchemaDescription(kind=SchemaKind.DEFAULT, inner=annotation)
        elif dc_field.default is dataclasses.MISSING:
            fields[dc_field.name] = annotation
        elif dc_field.default is None:
            fields[dc_field.name] = SchemaDescription(kind=SchemaKind.OPTIONAL, inner=annotation)
        else:
            fields[dc_field.name] = SchemaDescription(
                kind=SchemaKind.DEFAULT, inner=annotation, default=dc_field.default
            )
    return SchemaDescription(kind=SchemaKind.OBJECT, fields=fields, model=tp)


def _describe_typeddict(tp: type) -> SchemaDescription:
    hints = get_type_hints(tp, include_extras=True)
    required = getattr(tp, "__required_keys__", frozenset(hints))
    fields = {}
    for name, annotation in hints.items():
        if name in required:
            fields[name] = annotation
        else:
            fields[name] = SchemaDescription(kind=SchemaKind.OPTIONAL, inner=annotation)
    return SchemaDescription(kind=SchemaKind.OBJECT, fields=fields, model=tp)


def _common_type_name(values: Iterable[Any]) -> Optional[str]:
    """JSON type shared by all ``values``, or None when they are mixed."""
    names = {_describe_annotation(type(value)).type_name for value in values}
    if len(names) == 1:
        return names.pop()
    return None


# --- metadata --------------------------------------------------------------

def _flatten_metadata(metadata: Iterable[Any]) -> Iterable[Any]:
    # Field(...) used inside Annotated carries its own metadata list.
    for item in metadata:
        if _is_v2_field(item):
            yield from _flatten_metadata(item.metadata)
        else:
            yield item


def _merge_metadata(
    desc: SchemaDescription,
    metadata: Iterable[Any],
    description: Optional[str],
) -> SchemaDescription:
    metadata = tuple(metadata)
    markers = list(desc.markers)
    constraints = dict(desc.constraints)
    for item in metadata:
        if _is_v2_field(item) and item.description and not description:
            description = item.description
    for item in _flatten_metadata(metadata):
        found = _constraints_of(item)
        if found:
            constraints.update(found)
        else:
            markers.append(item)
    return dataclasses.replace(
        desc,
        markers=tuple(markers),
        constraints=constraints,
        description=description or desc.description,
    )


def _constraints_of(item: Any) -> Dict[str, Any]:
    found = {}
    for attr in CONSTRAINT_ATTRS:
        value = getattr(item, attr, None)
        if value is None:
            continue
        if attr == "pattern" and not isinstance(value, str):
            value = getattr(value, "pattern", value)  # compiled regex
        found[attr] = value
    return found
