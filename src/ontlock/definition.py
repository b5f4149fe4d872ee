"""The live API definition: access groups, entities, functions and their schemas.

``define_api()`` is the only supported way to build a definition. It validates
the structure eagerly and raises ``DefinitionError`` before any snapshot or hash
work can happen.
"""

from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ontlock.errors import DefinitionError
from ontlock.kernel.introspect import is_object_schema
from ontlock.kernel.snapshot import collect_field_references


class AccessGroup(BaseModel):
    """A named permission bucket."""
    description: str

    model_config = ConfigDict(extra="forbid")


class Entity(BaseModel):
    """A domain-object tag used to categorize functions."""
    description: str

    model_config = ConfigDict(extra="forbid")


class FunctionDefinition(BaseModel):
    """A single callable function of the API."""
    description: str
    access: List[str] = Field(..., min_length=1, description="Access groups allowed to call this function")
    entities: List[str] = Field(default_factory=list)
    inputs: Any = Field(..., description="Object schema (pydantic model, dataclass or TypedDict) for the arguments")
    outputs: Any = None
    resolver: Optional[Any] = Field(
        None,
        description="Handler reference ('pkg.module:attr', 'path/file.py:attr') or callable; not part of the snapshot",
    )

    model_config = ConfigDict(
        extra="forbid",
        arbitrary_types_allowed=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator("access", "entities")
    @classmethod
    def validate_no_duplicates(cls, v: List[str]) -> List[str]:
        duplicates = sorted({name for name in v if v.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate names not allowed: {duplicates}")
        return v


class ApiDefinition(BaseModel):
    """The complete API definition a snapshot is extracted from."""
    name: str = Field(..., min_length=1)
    environments: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    auth: Optional[Callable[..., Any]] = None
    access_groups: Dict[str, AccessGroup]
    entities: Optional[Dict[str, Entity]] = None
    functions: Dict[str, FunctionDefinition]

    model_config = ConfigDict(
        extra="forbid",
        arbitrary_types_allowed=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def get_function(self, name: str) -> Optional[FunctionDefinition]:
        return self.functions.get(name)


def validate_definition(definition: ApiDefinition) -> None:
    """Check the semantic rules the model structure cannot express.

    Raises:
        DefinitionError: on an unknown access group or entity, a non-object
            ``inputs`` schema, or a field reference to a nonexistent function.
    """
    valid_groups = set(definition.access_groups)
    valid_entities = set(definition.entities or {})

    for fn_name, fn in definition.functions.items():
        for group in fn.access:
            if group not in valid_groups:
                raise DefinitionError(
                    f"Function '{fn_name}' references unknown access group '{group}'. "
                    f"Valid groups: {', '.join(sorted(valid_groups)) or '(none)'}"
                )

        for entity in fn.entities:
            if entity not in valid_entities:
                raise DefinitionError(
                    f"Function '{fn_name}' references unknown entity '{entity}'. "
                    f"Valid entities: {', '.join(sorted(valid_entities)) or '(none)'}"
                )

        if not is_object_schema(fn.inputs):
            raise DefinitionError(
                f"Function '{fn_name}': inputs must be an object schema (a pydantic model, dataclass or TypedDict), "
                f"got {fn.inputs!r}"
            )

        for ref in collect_field_references(fn.inputs):
            if ref.function_name not in definition.functions:
                raise DefinitionError(
                    f"Function '{fn_name}' field '{ref.path}' takes its options from "
                    f"unknown function '{ref.function_name}'"
                )


def define_api(**config: Any) -> ApiDefinition:
    """Define an API with full validation.

    Example::

        api = define_api(
            name="my-api",
            access_groups={
                "public": {"description": "Unauthenticated users"},
                "admin": {"description": "Administrators"},
            },
            functions={
                "getUser": {
                    "description": "Get a user by ID",
                    "access": ["public", "admin"],
                    "inputs": GetUserInputs,
                    "outputs": User,
                    "resolver": "resolvers.users:get_user",
                },
            },
        )

    Raises:
        DefinitionError: if the definition is structurally or semantically invalid
    """
    try:
        definition = ApiDefinition.model_validate(config)
    except ValidationError as e:
        raise DefinitionError(f"Invalid API definition: {e}") from e
    validate_definition(definition)
    return definition
