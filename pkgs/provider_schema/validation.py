"""Recursive validation of JSON-like values against a :class:`Schema`.

The validator never raises for a schema/value pair. Every violation found in a
single pass is reported as an error :class:`Diagnostic` whose
``attribute_path`` uses dot notation (``ingress.0.port``, ``tags.env``).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .models import (
    Attribute,
    AttributeType,
    Block,
    Diagnostic,
    NestedBlock,
    NestingMode,
    Schema,
    TypeKind,
)

__all__ = ["ValidationResult", "is_valid", "json_kind", "validate", "validate_block", "validate_result"]

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True, slots=True)
class ValidationResult:
    ok: bool
    diagnostics: tuple[Diagnostic, ...] = ()


def validate(schema: Schema, value: Any) -> list[Diagnostic]:
    """Return every diagnostic for ``value``; an empty list means valid."""

    return validate_block(schema.block, value)


def is_valid(schema: Schema, value: Any) -> bool:
    return not validate(schema, value)


def validate_result(schema: Schema, value: Any) -> ValidationResult:
    diagnostics = tuple(validate(schema, value))
    return ValidationResult(ok=not diagnostics, diagnostics=diagnostics)


def validate_block(block: Block, value: Any, path: str = "") -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    _check_block(block, value, path, diagnostics)
    return diagnostics


def json_kind(value: Any) -> str:
    """Name the JSON kind of a decoded value, as used in diagnostic details."""

    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, Sequence):
        return "array"
    return "unknown"


def _join(path: str, segment: object) -> str:
    return f"{path}.{segment}" if path else str(segment)


def _is_array(value: Any) -> bool:
    return json_kind(value) == "array"


def _check_block(block: Block, value: Any, path: str, out: list[Diagnostic]) -> None:
    if value is None:
        return
    if not isinstance(value, Mapping):
        diagnostic = Diagnostic.error("Expected object").with_detail(f"Got {json_kind(value)}")
        out.append(diagnostic.with_attribute(path) if path else diagnostic)
        return

    for name, attribute in block.attributes.items():
        _check_attribute(attribute, value.get(name), _join(path, name), out)

    for name, nested in block.blocks.items():
        _check_nested_block(nested, value.get(name), _join(path, name), out)


def _check_attribute(attribute: Attribute, value: Any, path: str, out: list[Diagnostic]) -> None:
    if attribute.is_computed_only:
        return
    if value is None:
        if attribute.flags.required:
            out.append(
                Diagnostic.error(f"Missing required attribute '{path}'")
                .with_detail("This attribute is required and must be provided")
                .with_attribute(path)
            )
        return
    _check_type(attribute.type, value, path, out)


def _type_error(expected: str, value: Any, path: str) -> Diagnostic:
    return (
        Diagnostic.error(f"Invalid type for attribute '{path}'")
        .with_detail(f"Expected {expected}, got {json_kind(value)}")
        .with_attribute(path)
    )


def _is_int64(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return _INT64_MIN <= value <= _INT64_MAX
    if isinstance(value, float):
        return value.is_integer() and _INT64_MIN <= value <= _INT64_MAX
    return False


def _check_type(attr_type: AttributeType, value: Any, path: str, out: list[Diagnostic]) -> None:
    kind = attr_type.kind
    if kind is TypeKind.DYNAMIC:
        return
    if kind is TypeKind.STRING:
        if not isinstance(value, str):
            out.append(_type_error("string", value, path))
    elif kind is TypeKind.BOOL:
        if not isinstance(value, bool):
            out.append(_type_error("bool", value, path))
    elif kind is TypeKind.INT64:
        if not _is_int64(value):
            out.append(_type_error("int64", value, path))
    elif kind is TypeKind.FLOAT64:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            out.append(_type_error("float64", value, path))
    elif kind in (TypeKind.LIST, TypeKind.SET):
        if not _is_array(value):
            out.append(_type_error(kind.value, value, path))
            return
        assert attr_type.element is not None
        for index, item in enumerate(value):
            _check_type(attr_type.element, item, _join(path, index), out)
    elif kind is TypeKind.MAP:
        if not isinstance(value, Mapping):
            out.append(_type_error("map", value, path))
            return
        assert attr_type.element is not None
        for key, item in value.items():
            _check_type(attr_type.element, item, _join(path, key), out)
    elif kind is TypeKind.OBJECT:
        if not isinstance(value, Mapping):
            out.append(_type_error("object", value, path))
            return
        assert attr_type.fields is not None
        for name, field_type in attr_type.fields.items():
            if name in value:
                _check_type(field_type, value[name], _join(path, name), out)


def _check_cardinality(nested: NestedBlock, count: int, path: str, out: list[Diagnostic]) -> None:
    if count < nested.min_items:
        out.append(
            Diagnostic.error(
                f"Block '{path}' requires at least {nested.min_items} item(s), got {count}"
            ).with_attribute(path)
        )
    if nested.max_items > 0 and count > nested.max_items:
        out.append(
            Diagnostic.error(
                f"Block '{path}' allows at most {nested.max_items} item(s), got {count}"
            ).with_attribute(path)
        )


def _check_nested_block(nested: NestedBlock, value: Any, path: str, out: list[Diagnostic]) -> None:
    mode = nested.nesting_mode
    if value is None:
        if nested.min_items > 0:
            if mode is NestingMode.SINGLE:
                diagnostic = Diagnostic.error(f"Missing required block '{path}'").with_detail(
                    "At least one block is required"
                )
            else:
                diagnostic = Diagnostic.error(
                    f"Block '{path}' requires at least {nested.min_items} item(s)"
                )
            out.append(diagnostic.with_attribute(path))
        return

    if mode is NestingMode.SINGLE:
        _check_block(nested.block, value, path, out)
    elif mode in (NestingMode.LIST, NestingMode.SET):
        if not _is_array(value):
            out.append(
                Diagnostic.error(f"Expected list for block '{path}'")
                .with_detail(f"Got {json_kind(value)}")
                .with_attribute(path)
            )
            return
        _check_cardinality(nested, len(value), path, out)
        for index, item in enumerate(value):
            _check_block(nested.block, item, _join(path, index), out)
    elif mode is NestingMode.MAP:
        if not isinstance(value, Mapping):
            out.append(
                Diagnostic.error(f"Expected map for block '{path}'")
                .with_detail(f"Got {json_kind(value)}")
                .with_attribute(path)
            )
            return
        _check_cardinality(nested, len(value), path, out)
        for key, item in value.items():
            _check_block(nested.block, item, _join(path, key), out)
