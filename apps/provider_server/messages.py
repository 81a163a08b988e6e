"""Wire models for the provider RPC surface.

JSON payload fields (states, configs, attribute types and defaults) travel as
JSON text inside a string field; the empty string is the empty payload.
Request models ignore unknown fields so that older servers accept newer
clients, while responses are strict.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from pkgs.plan_diff import AttributeChange
from pkgs.provider_schema import Block, Diagnostic, DiagnosticSeverity, Schema

__all__ = [
    "AttributeChangeMsg",
    "AttributeMsg",
    "BlockMsg",
    "ConfigureRequest",
    "ConfigureResponse",
    "CreateRequest",
    "CreateResponse",
    "DeleteRequest",
    "DeleteResponse",
    "DiagnosticMsg",
    "GetMetadataRequest",
    "GetMetadataResponse",
    "GetSchemaRequest",
    "GetSchemaResponse",
    "ImportResourceStateRequest",
    "ImportResourceStateResponse",
    "ImportedResourceMsg",
    "NestedBlockMsg",
    "PlanRequest",
    "PlanResponse",
    "ReadDataSourceRequest",
    "ReadDataSourceResponse",
    "ReadRequest",
    "ReadResponse",
    "SchemaMsg",
    "ServerCapabilitiesMsg",
    "StopRequest",
    "StopResponse",
    "UpdateRequest",
    "UpdateResponse",
    "UpgradeResourceStateRequest",
    "UpgradeResourceStateResponse",
    "ValidateDataSourceConfigRequest",
    "ValidateDataSourceConfigResponse",
    "ValidateProviderConfigRequest",
    "ValidateProviderConfigResponse",
    "ValidateResourceConfigRequest",
    "ValidateResourceConfigResponse",
    "block_to_msg",
    "change_to_msg",
    "decode_json",
    "diagnostic_from_msg",
    "diagnostics_to_msgs",
    "encode_json",
    "schema_to_msg",
]


def decode_json(payload: str | bytes | None) -> Any:
    """Decode a payload leniently: empty or malformed input yields ``None``.

    ``NaN`` and ``Infinity`` are not JSON and count as malformed.
    """

    if not payload:
        return None
    try:
        return json.loads(payload, parse_constant=_reject_constant)
    except (TypeError, ValueError):
        return None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} is not valid JSON")


def encode_json(value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError):
        return ""


class _Request(BaseModel):
    model_config = ConfigDict(extra="ignore")

    protocol_version: int | None = None


class _Response(BaseModel):
    model_config = ConfigDict(extra="forbid")


class DiagnosticMsg(_Response):
    severity: Literal["error", "warning"]
    summary: str
    detail: str = ""
    attribute: str = ""


class _DiagnosticsResponse(_Response):
    diagnostics: list[DiagnosticMsg] = Field(default_factory=list)


# Metadata and schema


class GetMetadataRequest(_Request):
    pass


class ServerCapabilitiesMsg(_Response):
    plan_destroy: bool = False


class GetMetadataResponse(_DiagnosticsResponse):
    server_capabilities: ServerCapabilitiesMsg = Field(default_factory=ServerCapabilitiesMsg)
    resources: list[str] = Field(default_factory=list)
    data_sources: list[str] = Field(default_factory=list)


class GetSchemaRequest(_Request):
    pass


class AttributeMsg(_Response):
    name: str
    type: str
    required: bool = False
    optional: bool = False
    computed: bool = False
    sensitive: bool = False
    description: str = ""
    force_new: bool = False
    default_value: str = ""


class NestedBlockMsg(_Response):
    type_name: str
    block: BlockMsg
    nesting_mode: Literal["single", "list", "set", "map"]
    min_items: int = 0
    max_items: int = 0


class BlockMsg(_Response):
    attributes: list[AttributeMsg] = Field(default_factory=list)
    block_types: list[NestedBlockMsg] = Field(default_factory=list)
    description: str = ""


NestedBlockMsg.model_rebuild()


class SchemaMsg(_Response):
    version: int = 0
    block: BlockMsg = Field(default_factory=BlockMsg)


class GetSchemaResponse(_DiagnosticsResponse):
    provider: SchemaMsg = Field(default_factory=SchemaMsg)
    resources: dict[str, SchemaMsg] = Field(default_factory=dict)
    data_sources: dict[str, SchemaMsg] = Field(default_factory=dict)


# Provider lifecycle


class ValidateProviderConfigRequest(_Request):
    config: str = ""


class ValidateProviderConfigResponse(_DiagnosticsResponse):
    pass


class ConfigureRequest(_Request):
    config: str = ""


class ConfigureResponse(_DiagnosticsResponse):
    pass


class StopRequest(_Request):
    pass


class StopResponse(_Response):
    error: str = ""


# Resources


class ValidateResourceConfigRequest(_Request):
    resource_type: str
    config: str = ""


class ValidateResourceConfigResponse(_DiagnosticsResponse):
    pass


class UpgradeResourceStateRequest(_Request):
    resource_type: str
    version: int = 0
    raw_state: str = ""


class UpgradeResourceStateResponse(_DiagnosticsResponse):
    upgraded_state: str = ""


class PlanRequest(_Request):
    resource_type: str
    prior_state: str = ""
    proposed_state: str = ""
    config: str = ""


class AttributeChangeMsg(_Response):
    path: str
    before: str = ""
    after: str = ""


class PlanResponse(_DiagnosticsResponse):
    planned_state: str = ""
    changes: list[AttributeChangeMsg] = Field(default_factory=list)
    requires_replace: bool = False


class CreateRequest(_Request):
    resource_type: str
    planned_state: str = ""


class CreateResponse(_DiagnosticsResponse):
    state: str = ""


class ReadRequest(_Request):
    resource_type: str
    current_state: str = ""


class ReadResponse(_DiagnosticsResponse):
    state: str = ""


class UpdateRequest(_Request):
    resource_type: str
    prior_state: str = ""
    planned_state: str = ""


class UpdateResponse(_DiagnosticsResponse):
    state: str = ""


class DeleteRequest(_Request):
    resource_type: str
    current_state: str = ""


class DeleteResponse(_DiagnosticsResponse):
    pass


class ImportResourceStateRequest(_Request):
    resource_type: str
    id: str


class ImportedResourceMsg(_Response):
    resource_type: str
    state: str = ""


class ImportResourceStateResponse(_DiagnosticsResponse):
    imported: list[ImportedResourceMsg] = Field(default_factory=list)


# Data sources


class ValidateDataSourceConfigRequest(_Request):
    data_source_type: str
    config: str = ""


class ValidateDataSourceConfigResponse(_DiagnosticsResponse):
    pass


class ReadDataSourceRequest(_Request):
    data_source_type: str
    config: str = ""


class ReadDataSourceResponse(_DiagnosticsResponse):
    state: str = ""


# Conversions from the schema and diff models


def diagnostics_to_msgs(diagnostics: Iterable[Diagnostic]) -> list[DiagnosticMsg]:
    return [
        DiagnosticMsg(
            severity=diagnostic.severity.value,
            summary=diagnostic.summary,
            detail=diagnostic.detail or "",
            attribute=diagnostic.attribute_path or "",
        )
        for diagnostic in diagnostics
    ]


def diagnostic_from_msg(message: DiagnosticMsg) -> Diagnostic:
    return Diagnostic(
        severity=DiagnosticSeverity(message.severity),
        summary=message.summary,
        detail=message.detail or None,
        attribute_path=message.attribute or None,
    )


def change_to_msg(change: AttributeChange) -> AttributeChangeMsg:
    return AttributeChangeMsg(
        path=change.path,
        before="" if change.before is None else encode_json(change.before),
        after="" if change.after is None else encode_json(change.after),
    )


def block_to_msg(block: Block) -> BlockMsg:
    return BlockMsg(
        attributes=[
            AttributeMsg(
                name=name,
                type=encode_json(attribute.type.to_json()),
                required=attribute.flags.required,
                optional=attribute.flags.optional,
                computed=attribute.flags.computed,
                sensitive=attribute.flags.sensitive,
                description=attribute.description or "",
                force_new=attribute.force_new,
                default_value="" if attribute.default is None else encode_json(attribute.default),
            )
            for name, attribute in block.attributes.items()
        ],
        block_types=[
            NestedBlockMsg(
                type_name=name,
                block=block_to_msg(nested.block),
                nesting_mode=nested.nesting_mode.value,
                min_items=nested.min_items,
                max_items=nested.max_items,
            )
            for name, nested in block.blocks.items()
        ],
        description=block.description or "",
    )


def schema_to_msg(schema: Schema) -> SchemaMsg:
    return SchemaMsg(version=schema.version, block=block_to_msg(schema.block))
