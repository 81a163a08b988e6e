"""Schema model and validation engine for Hemmer providers."""

from .models import (  # noqa: F401
    BOOL,
    COMPUTED,
    DYNAMIC,
    FLOAT64,
    INT64,
    OPTIONAL,
    OPTIONAL_COMPUTED,
    REQUIRED,
    STRING,
    Attribute,
    AttributeFlags,
    AttributeType,
    Block,
    Diagnostic,
    DiagnosticSeverity,
    NestedBlock,
    NestingMode,
    ProviderSchema,
    Schema,
    TypeKind,
    list_of,
    map_of,
    object_of,
    set_of,
)
from .validation import (  # noqa: F401
    ValidationResult,
    is_valid,
    json_kind,
    validate,
    validate_block,
    validate_result,
)

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
    "ValidationResult",
    "is_valid",
    "json_kind",
    "list_of",
    "map_of",
    "object_of",
    "set_of",
    "validate",
    "validate_block",
    "validate_result",
]
