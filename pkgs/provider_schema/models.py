"""Schema data model shared by providers, the validator and the wire layer.

Every object here is immutable. Builder helpers such as
:meth:`Block.with_attribute` return a new instance, so a
:class:`ProviderSchema` can be assembled fluently at provider start and then
shared read-only between concurrent requests.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

__all__ = [
    "BOOL",
    "COMPUTED",
    "DYNAMIC",
    "FLOAT64",
    "INT64",
    "OPTIONAL",
    "OPTIONAL_COMPUTED",
    "REQUIRED",
    "STRING",
    "Attribute",
    "AttributeFlags",
    "AttributeType",
    "Block",
    "Diagnostic",
    "DiagnosticSeverity",
    "NestedBlock",
    "NestingMode",
    "ProviderSchema",
    "Schema",
    "TypeKind",
    "list_of",
    "map_of",
    "object_of",
    "set_of",
]


def _frozen_mapping(value: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(value or {}))


class TypeKind(str, Enum):
    STRING = "string"
    INT64 = "int64"
    FLOAT64 = "float64"
    BOOL = "bool"
    LIST = "list"
    SET = "set"
    MAP = "map"
    OBJECT = "object"
    DYNAMIC = "dynamic"


_PRIMITIVE_KINDS = frozenset(
    {TypeKind.STRING, TypeKind.INT64, TypeKind.FLOAT64, TypeKind.BOOL, TypeKind.DYNAMIC}
)
_COLLECTION_KINDS = frozenset({TypeKind.LIST, TypeKind.SET, TypeKind.MAP})


@dataclass(frozen=True, slots=True)
class AttributeType:
    """Recursive type descriptor for an attribute value.

    Collections carry an ``element`` type; objects carry ``fields``. Use the
    module constants and the ``*_of`` constructors rather than building
    instances directly.
    """

    kind: TypeKind
    element: AttributeType | None = None
    fields: Mapping[str, AttributeType] | None = None

    def __post_init__(self) -> None:
        if self.kind in _COLLECTION_KINDS and self.element is None:
            raise ValueError(f"{self.kind.value} type requires an element type")
        if self.kind is TypeKind.OBJECT:
            object.__setattr__(self, "fields", _frozen_mapping(self.fields))

    @property
    def name(self) -> str:
        return self.kind.value

    def to_json(self) -> Any:
        """Return the JSON encoding used on the wire."""

        if self.kind in _PRIMITIVE_KINDS:
            return self.kind.value
        if self.kind is TypeKind.OBJECT:
            assert self.fields is not None
            return {"object": {key: value.to_json() for key, value in self.fields.items()}}
        assert self.element is not None
        return {self.kind.value: self.element.to_json()}

    @classmethod
    def from_json(cls, payload: Any) -> AttributeType:
        if isinstance(payload, str):
            try:
                kind = TypeKind(payload)
            except ValueError:
                raise ValueError(f"Unknown attribute type: {payload!r}") from None
            if kind not in _PRIMITIVE_KINDS:
                raise ValueError(f"Type {payload!r} requires a parameter")
            return cls(kind)
        if isinstance(payload, Mapping) and len(payload) == 1:
            ((tag, inner),) = payload.items()
            if tag == "object":
                if not isinstance(inner, Mapping):
                    raise ValueError("Object type fields must be a mapping")
                return object_of({key: cls.from_json(value) for key, value in inner.items()})
            try:
                kind = TypeKind(tag)
            except ValueError:
                raise ValueError(f"Unknown attribute type: {tag!r}") from None
            if kind not in _COLLECTION_KINDS:
                raise ValueError(f"Type {tag!r} does not take a parameter")
            return cls(kind, element=cls.from_json(inner))
        raise ValueError(f"Unsupported attribute type encoding: {payload!r}")


STRING = AttributeType(TypeKind.STRING)
INT64 = AttributeType(TypeKind.INT64)
FLOAT64 = AttributeType(TypeKind.FLOAT64)
BOOL = AttributeType(TypeKind.BOOL)
DYNAMIC = AttributeType(TypeKind.DYNAMIC)


def list_of(element: AttributeType) -> AttributeType:
    return AttributeType(TypeKind.LIST, element=element)


def set_of(element: AttributeType) -> AttributeType:
    return AttributeType(TypeKind.SET, element=element)


def map_of(element: AttributeType) -> AttributeType:
    return AttributeType(TypeKind.MAP, element=element)


def object_of(fields: Mapping[str, AttributeType]) -> AttributeType:
    return AttributeType(TypeKind.OBJECT, fields=fields)


@dataclass(frozen=True, slots=True)
class AttributeFlags:
    required: bool = False
    optional: bool = False
    computed: bool = False
    sensitive: bool = False

    def as_sensitive(self) -> AttributeFlags:
        return replace(self, sensitive=True)

    @property
    def is_computed_only(self) -> bool:
        """Provider-set attributes that callers never supply."""

        return self.computed and not self.required and not self.optional


REQUIRED = AttributeFlags(required=True)
OPTIONAL = AttributeFlags(optional=True)
COMPUTED = AttributeFlags(computed=True)
OPTIONAL_COMPUTED = AttributeFlags(optional=True, computed=True)


@dataclass(frozen=True, slots=True)
class Attribute:
    """A typed attribute declared inside a :class:`Block`.

    ``force_new`` marks attributes whose change requires replacing the
    resource. It is carried to the caller as metadata; deciding on
    replacement is left to the provider's ``plan``.
    """

    type: AttributeType
    flags: AttributeFlags
    description: str | None = None
    force_new: bool = False
    default: Any = None

    @classmethod
    def required_string(cls) -> Attribute:
        return cls(STRING, REQUIRED)

    @classmethod
    def optional_string(cls) -> Attribute:
        return cls(STRING, OPTIONAL)

    @classmethod
    def computed_string(cls) -> Attribute:
        return cls(STRING, COMPUTED)

    @classmethod
    def required_int64(cls) -> Attribute:
        return cls(INT64, REQUIRED)

    @classmethod
    def optional_int64(cls) -> Attribute:
        return cls(INT64, OPTIONAL)

    @classmethod
    def computed_int64(cls) -> Attribute:
        return cls(INT64, COMPUTED)

    @classmethod
    def required_bool(cls) -> Attribute:
        return cls(BOOL, REQUIRED)

    @classmethod
    def optional_bool(cls) -> Attribute:
        return cls(BOOL, OPTIONAL)

    @classmethod
    def computed_bool(cls) -> Attribute:
        return cls(BOOL, COMPUTED)

    def with_description(self, description: str) -> Attribute:
        return replace(self, description=description)

    def with_force_new(self) -> Attribute:
        return replace(self, force_new=True)

    def with_default(self, value: Any) -> Attribute:
        return replace(self, default=value)

    def as_sensitive(self) -> Attribute:
        return replace(self, flags=self.flags.as_sensitive())

    @property
    def is_computed_only(self) -> bool:
        return self.flags.is_computed_only


class NestingMode(str, Enum):
    SINGLE = "single"
    LIST = "list"
    SET = "set"
    MAP = "map"


@dataclass(frozen=True, slots=True)
class Block:
    attributes: Mapping[str, Attribute] = field(default_factory=dict)
    blocks: Mapping[str, NestedBlock] = field(default_factory=dict)
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen_mapping(self.attributes))
        object.__setattr__(self, "blocks", _frozen_mapping(self.blocks))

    def with_attribute(self, name: str, attribute: Attribute) -> Block:
        return replace(self, attributes={**self.attributes, name: attribute})

    def with_block(self, name: str, block: NestedBlock) -> Block:
        return replace(self, blocks={**self.blocks, name: block})

    def with_description(self, description: str) -> Block:
        return replace(self, description=description)


@dataclass(frozen=True, slots=True)
class NestedBlock:
    """A repeatable child block; ``max_items == 0`` means unbounded."""

    block: Block
    nesting_mode: NestingMode
    min_items: int = 0
    max_items: int = 0

    def __post_init__(self) -> None:
        if self.min_items < 0 or self.max_items < 0:
            raise ValueError("min_items and max_items must be non-negative")

    @classmethod
    def single(cls, block: Block) -> NestedBlock:
        return cls(block, NestingMode.SINGLE, max_items=1)

    @classmethod
    def list(cls, block: Block) -> NestedBlock:
        return cls(block, NestingMode.LIST)

    @classmethod
    def set(cls, block: Block) -> NestedBlock:
        return cls(block, NestingMode.SET)

    @classmethod
    def map(cls, block: Block) -> NestedBlock:
        return cls(block, NestingMode.MAP)

    def with_min_items(self, count: int) -> NestedBlock:
        return replace(self, min_items=count)

    def with_max_items(self, count: int) -> NestedBlock:
        return replace(self, max_items=count)


@dataclass(frozen=True, slots=True)
class Schema:
    """Versioned root block for a provider, resource or data source."""

    version: int = 0
    block: Block = field(default_factory=Block)

    @classmethod
    def v0(cls) -> Schema:
        return cls()

    def with_attribute(self, name: str, attribute: Attribute) -> Schema:
        return replace(self, block=self.block.with_attribute(name, attribute))

    def with_block(self, name: str, block: NestedBlock) -> Schema:
        return replace(self, block=self.block.with_block(name, block))

    def with_description(self, description: str) -> Schema:
        return replace(self, block=self.block.with_description(description))


@dataclass(frozen=True, slots=True)
class ProviderSchema:
    provider: Schema = field(default_factory=Schema)
    resources: Mapping[str, Schema] = field(default_factory=dict)
    data_sources: Mapping[str, Schema] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "resources", _frozen_mapping(self.resources))
        object.__setattr__(self, "data_sources", _frozen_mapping(self.data_sources))

    def with_provider_config(self, schema: Schema) -> ProviderSchema:
        return replace(self, provider=schema)

    def with_resource(self, name: str, schema: Schema) -> ProviderSchema:
        return replace(self, resources={**self.resources, name: schema})

    def with_data_source(self, name: str, schema: Schema) -> ProviderSchema:
        return replace(self, data_sources={**self.data_sources, name: schema})


class DiagnosticSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Structured error or warning returned as data, never raised."""

    severity: DiagnosticSeverity
    summary: str
    detail: str | None = None
    attribute_path: str | None = None

    @classmethod
    def error(cls, summary: str) -> Diagnostic:
        return cls(DiagnosticSeverity.ERROR, summary)

    @classmethod
    def warning(cls, summary: str) -> Diagnostic:
        return cls(DiagnosticSeverity.WARNING, summary)

    def with_detail(self, detail: str) -> Diagnostic:
        return replace(self, detail=detail)

    def with_attribute(self, path: str) -> Diagnostic:
        return replace(self, attribute_path=path)

    @property
    def is_error(self) -> bool:
        return self.severity is DiagnosticSeverity.ERROR
