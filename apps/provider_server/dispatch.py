"""Translate RPC requests into :class:`ProviderService` calls.

Every provider failure is caught here and returned as a single error
diagnostic inside an otherwise successful response. Only malformed frames,
unknown methods and unsupported protocol versions surface as
:class:`~apps.provider_server.errors.RpcError`.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from pkgs.provider_schema import Diagnostic

from . import messages as m
from .errors import CanonicalError, ProviderError, RpcError, to_diagnostics
from .logging import get_logger, log_event
from .protocol import check_protocol_version
from .provider import ProviderService

__all__ = ["METHODS", "ProviderDispatcher"]

LOGGER = get_logger("dispatch")

_Handler = Callable[[Any], Awaitable[BaseModel]]


def _has_errors(diagnostics: Sequence[Diagnostic]) -> bool:
    return any(diagnostic.is_error for diagnostic in diagnostics)


class ProviderDispatcher:
    """Method table binding wire requests to a provider instance."""

    def __init__(self, provider: ProviderService) -> None:
        self._provider = provider
        self._routes: dict[str, tuple[type[BaseModel], _Handler]] = {
            "GetMetadata": (m.GetMetadataRequest, self._get_metadata),
            "GetSchema": (m.GetSchemaRequest, self._get_schema),
            "ValidateProviderConfig": (m.ValidateProviderConfigRequest, self._validate_provider_config),
            "Configure": (m.ConfigureRequest, self._configure),
            "Stop": (m.StopRequest, self._stop),
            "ValidateResourceConfig": (m.ValidateResourceConfigRequest, self._validate_resource_config),
            "UpgradeResourceState": (m.UpgradeResourceStateRequest, self._upgrade_resource_state),
            "Plan": (m.PlanRequest, self._plan),
            "Create": (m.CreateRequest, self._create),
            "Read": (m.ReadRequest, self._read),
            "Update": (m.UpdateRequest, self._update),
            "Delete": (m.DeleteRequest, self._delete),
            "ImportResourceState": (m.ImportResourceStateRequest, self._import_resource_state),
            "ValidateDataSourceConfig": (m.ValidateDataSourceConfigRequest, self._validate_data_source_config),
            "ReadDataSource": (m.ReadDataSourceRequest, self._read_data_source),
        }

    @property
    def provider(self) -> ProviderService:
        return self._provider

    @property
    def methods(self) -> tuple[str, ...]:
        return tuple(self._routes)

    async def handle(self, method: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        route = self._routes.get(method)
        if route is None:
            raise RpcError(CanonicalError.UNIMPLEMENTED, f"Method not found: {method}")
        request_model, handler = route
        try:
            request = request_model.model_validate(dict(params or {}))
        except ModelValidationError as exc:
            raise RpcError(
                CanonicalError.INVALID_ARGUMENT,
                f"Invalid params for {method}: {exc.error_count()} validation error(s)",
            ) from exc
        client_version = getattr(request, "protocol_version", None)
        if client_version is not None:
            try:
                check_protocol_version(client_version)
            except ProviderError as exc:
                raise RpcError.from_provider_error(exc) from exc
        response = await handler(request)
        return response.model_dump()

    # Logging helpers

    def _failed(self, method: str, exc: BaseException, **fields: Any) -> list[m.DiagnosticMsg]:
        log_event(
            f"{method} failed",
            level=logging.ERROR,
            logger=LOGGER,
            method=method,
            error=str(exc),
            error_type=type(exc).__name__,
            **fields,
        )
        return m.diagnostics_to_msgs(to_diagnostics(exc))

    def _completed(self, method: str, diagnostics: Sequence[Diagnostic] = (), **fields: Any) -> list[m.DiagnosticMsg]:
        if _has_errors(diagnostics):
            log_event(
                f"{method} completed with errors",
                level=logging.WARNING,
                logger=LOGGER,
                method=method,
                diagnostics=len(diagnostics),
                **fields,
            )
        else:
            log_event(f"{method} completed", logger=LOGGER, method=method, **fields)
        return m.diagnostics_to_msgs(diagnostics)

    def _called(self, method: str, **fields: Any) -> None:
        log_event(f"{method} called", level=logging.DEBUG, logger=LOGGER, method=method, **fields)

    # Metadata and schema

    async def _get_metadata(self, request: m.GetMetadataRequest) -> m.GetMetadataResponse:
        self._called("GetMetadata")
        try:
            metadata = self._provider.metadata()
        except Exception as exc:
            return m.GetMetadataResponse(diagnostics=self._failed("GetMetadata", exc))
        self._completed(
            "GetMetadata",
            resources=len(metadata.resources),
            data_sources=len(metadata.data_sources),
        )
        return m.GetMetadataResponse(
            server_capabilities=m.ServerCapabilitiesMsg(plan_destroy=metadata.capabilities.plan_destroy),
            resources=list(metadata.resources),
            data_sources=list(metadata.data_sources),
        )

    async def _get_schema(self, request: m.GetSchemaRequest) -> m.GetSchemaResponse:
        self._called("GetSchema")
        try:
            schema = self._provider.schema()
        except Exception as exc:
            return m.GetSchemaResponse(diagnostics=self._failed("GetSchema", exc))
        self._completed("GetSchema", resources=len(schema.resources), data_sources=len(schema.data_sources))
        return m.GetSchemaResponse(
            provider=m.schema_to_msg(schema.provider),
            resources={name: m.schema_to_msg(value) for name, value in schema.resources.items()},
            data_sources={name: m.schema_to_msg(value) for name, value in schema.data_sources.items()},
        )

    # Provider lifecycle

    async def _validate_provider_config(
        self, request: m.ValidateProviderConfigRequest
    ) -> m.ValidateProviderConfigResponse:
        self._called("ValidateProviderConfig")
        config = m.decode_json(request.config)
        try:
            diagnostics = list(await self._provider.validate_provider_config(config))
        except Exception as exc:
            return m.ValidateProviderConfigResponse(diagnostics=self._failed("ValidateProviderConfig", exc))
        return m.ValidateProviderConfigResponse(diagnostics=self._completed("ValidateProviderConfig", diagnostics))

    async def _configure(self, request: m.ConfigureRequest) -> m.ConfigureResponse:
        self._called("Configure")
        config = m.decode_json(request.config)
        try:
            diagnostics = list(await self._provider.configure(config))
        except Exception as exc:
            return m.ConfigureResponse(diagnostics=self._failed("Configure", exc))
        return m.ConfigureResponse(diagnostics=self._completed("Configure", diagnostics))

    async def _stop(self, request: m.StopRequest) -> m.StopResponse:
        self._called("Stop")
        try:
            await self._provider.stop()
        except Exception as exc:
            self._failed("Stop", exc)
            return m.StopResponse(error=str(exc))
        self._completed("Stop")
        return m.StopResponse()

    # Resources

    async def _validate_resource_config(
        self, request: m.ValidateResourceConfigRequest
    ) -> m.ValidateResourceConfigResponse:
        resource_type = request.resource_type
        self._called("ValidateResourceConfig", resource_type=resource_type)
        config = m.decode_json(request.config)
        try:
            diagnostics = list(await self._provider.validate_resource_config(resource_type, config))
        except Exception as exc:
            return m.ValidateResourceConfigResponse(
                diagnostics=self._failed("ValidateResourceConfig", exc, resource_type=resource_type)
            )
        return m.ValidateResourceConfigResponse(
            diagnostics=self._completed("ValidateResourceConfig", diagnostics, resource_type=resource_type)
        )

    async def _upgrade_resource_state(
        self, request: m.UpgradeResourceStateRequest
    ) -> m.UpgradeResourceStateResponse:
        resource_type = request.resource_type
        self._called("UpgradeResourceState", resource_type=resource_type, version=request.version)
        state = m.decode_json(request.raw_state)
        try:
            upgraded = await self._provider.upgrade_resource_state(resource_type, request.version, state)
        except Exception as exc:
            return m.UpgradeResourceStateResponse(
                diagnostics=self._failed("UpgradeResourceState", exc, resource_type=resource_type)
            )
        self._completed("UpgradeResourceState", resource_type=resource_type)
        return m.UpgradeResourceStateResponse(upgraded_state=m.encode_json(upgraded))

    async def _plan(self, request: m.PlanRequest) -> m.PlanResponse:
        resource_type = request.resource_type
        is_create = not request.prior_state
        self._called("Plan", resource_type=resource_type, is_create=is_create)
        prior_state = None if is_create else m.decode_json(request.prior_state)
        proposed_state = m.decode_json(request.proposed_state)
        config = m.decode_json(request.config)
        try:
            result = await self._provider.plan(resource_type, prior_state, proposed_state, config)
        except Exception as exc:
            return m.PlanResponse(diagnostics=self._failed("Plan", exc, resource_type=resource_type))
        self._completed(
            "Plan",
            resource_type=resource_type,
            changes=len(result.changes),
            requires_replace=result.requires_replace,
        )
        return m.PlanResponse(
            planned_state=m.encode_json(result.planned_state),
            changes=[m.change_to_msg(change) for change in result.changes],
            requires_replace=result.requires_replace,
        )

    async def _create(self, request: m.CreateRequest) -> m.CreateResponse:
        resource_type = request.resource_type
        self._called("Create", resource_type=resource_type)
        planned_state = m.decode_json(request.planned_state)
        try:
            state = await self._provider.create(resource_type, planned_state)
        except Exception as exc:
            return m.CreateResponse(diagnostics=self._failed("Create", exc, resource_type=resource_type))
        self._completed("Create", resource_type=resource_type)
        return m.CreateResponse(state=m.encode_json(state))

    async def _read(self, request: m.ReadRequest) -> m.ReadResponse:
        resource_type = request.resource_type
        self._called("Read", resource_type=resource_type)
        current_state = m.decode_json(request.current_state)
        try:
            state = await self._provider.read(resource_type, current_state)
        except Exception as exc:
            return m.ReadResponse(diagnostics=self._failed("Read", exc, resource_type=resource_type))
        self._completed("Read", resource_type=resource_type)
        return m.ReadResponse(state=m.encode_json(state))

    async def _update(self, request: m.UpdateRequest) -> m.UpdateResponse:
        resource_type = request.resource_type
        self._called("Update", resource_type=resource_type)
        prior_state = m.decode_json(request.prior_state)
        planned_state = m.decode_json(request.planned_state)
        try:
            state = await self._provider.update(resource_type, prior_state, planned_state)
        except Exception as exc:
            return m.UpdateResponse(diagnostics=self._failed("Update", exc, resource_type=resource_type))
        self._completed("Update", resource_type=resource_type)
        return m.UpdateResponse(state=m.encode_json(state))

    async def _delete(self, request: m.DeleteRequest) -> m.DeleteResponse:
        resource_type = request.resource_type
        self._called("Delete", resource_type=resource_type)
        current_state = m.decode_json(request.current_state)
        try:
            await self._provider.delete(resource_type, current_state)
        except Exception as exc:
            return m.DeleteResponse(diagnostics=self._failed("Delete", exc, resource_type=resource_type))
        self._completed("Delete", resource_type=resource_type)
        return m.DeleteResponse()

    async def _import_resource_state(
        self, request: m.ImportResourceStateRequest
    ) -> m.ImportResourceStateResponse:
        resource_type = request.resource_type
        self._called("ImportResourceState", resource_type=resource_type, id=request.id)
        try:
            imported = list(await self._provider.import_resource(resource_type, request.id))
        except Exception as exc:
            return m.ImportResourceStateResponse(
                diagnostics=self._failed("ImportResourceState", exc, resource_type=resource_type, id=request.id)
            )
        self._completed("ImportResourceState", resource_type=resource_type, id=request.id, imported=len(imported))
        return m.ImportResourceStateResponse(
            imported=[
                m.ImportedResourceMsg(resource_type=item.resource_type, state=m.encode_json(item.state))
                for item in imported
            ]
        )

    # Data sources

    async def _validate_data_source_config(
        self, request: m.ValidateDataSourceConfigRequest
    ) -> m.ValidateDataSourceConfigResponse:
        data_source_type = request.data_source_type
        self._called("ValidateDataSourceConfig", data_source_type=data_source_type)
        config = m.decode_json(request.config)
        try:
            diagnostics = list(await self._provider.validate_data_source_config(data_source_type, config))
        except Exception as exc:
            return m.ValidateDataSourceConfigResponse(
                diagnostics=self._failed("ValidateDataSourceConfig", exc, data_source_type=data_source_type)
            )
        return m.ValidateDataSourceConfigResponse(
            diagnostics=self._completed("ValidateDataSourceConfig", diagnostics, data_source_type=data_source_type)
        )

    async def _read_data_source(self, request: m.ReadDataSourceRequest) -> m.ReadDataSourceResponse:
        data_source_type = request.data_source_type
        self._called("ReadDataSource", data_source_type=data_source_type)
        config = m.decode_json(request.config)
        try:
            state = await self._provider.read_data_source(data_source_type, config)
        except Exception as exc:
            return m.ReadDataSourceResponse(
                diagnostics=self._failed("ReadDataSource", exc, data_source_type=data_source_type)
            )
        self._completed("ReadDataSource", data_source_type=data_source_type)
        return m.ReadDataSourceResponse(state=m.encode_json(state))


METHODS: tuple[str, ...] = (
    "GetMetadata",
    "GetSchema",
    "ValidateProviderConfig",
    "Configure",
    "Stop",
    "ValidateResourceConfig",
    "UpgradeResourceState",
    "Plan",
    "Create",
    "Read",
    "Update",
    "Delete",
    "ImportResourceState",
    "ValidateDataSourceConfig",
    "ReadDataSource",
)
