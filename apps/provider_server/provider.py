"""Capability interface implemented by concrete providers.

A single provider instance serves every request of the process, and requests
run concurrently on the event loop. Implementations must therefore tolerate
overlapping calls, including several in-flight calls for the same resource
type. The SDK itself takes no locks.

Operations raise :class:`~apps.provider_server.errors.ProviderError` (or any
other exception) to fail. The dispatcher turns the failure into a single
error diagnostic on the response.
"""

from __future__ import annotations

import abc
from collections.abc import Sequence
from typing import Any

from pkgs.plan_diff import PlanResult
from pkgs.provider_schema import Diagnostic, ProviderSchema

from .errors import SdkError, UnknownResourceError
from .protocol import ImportedResource, ProviderMetadata, ServerCapabilities

__all__ = ["ProviderService"]


class ProviderService(abc.ABC):
    # Schema and metadata

    @abc.abstractmethod
    def schema(self) -> ProviderSchema:
        """Return the schema for the provider, its resources and data sources."""

    def metadata(self) -> ProviderMetadata:
        schema = self.schema()
        return ProviderMetadata(
            resources=tuple(schema.resources),
            data_sources=tuple(schema.data_sources),
            capabilities=ServerCapabilities(),
        )

    # Provider lifecycle

    async def validate_provider_config(self, config: Any) -> Sequence[Diagnostic]:
        return []

    @abc.abstractmethod
    async def configure(self, config: Any) -> Sequence[Diagnostic]:
        """Apply credentials and settings; return any diagnostics."""

    async def stop(self) -> None:
        return None

    # Resources

    async def validate_resource_config(self, resource_type: str, config: Any) -> Sequence[Diagnostic]:
        return []

    async def upgrade_resource_state(self, resource_type: str, version: int, state: Any) -> Any:
        return state

    @abc.abstractmethod
    async def plan(
        self,
        resource_type: str,
        prior_state: Any | None,
        proposed_state: Any,
        config: Any,
    ) -> PlanResult:
        """Compute the planned state; ``prior_state`` is ``None`` for a create."""

    @abc.abstractmethod
    async def create(self, resource_type: str, planned_state: Any) -> Any:
        ...

    @abc.abstractmethod
    async def read(self, resource_type: str, current_state: Any) -> Any:
        ...

    @abc.abstractmethod
    async def update(self, resource_type: str, prior_state: Any, planned_state: Any) -> Any:
        ...

    @abc.abstractmethod
    async def delete(self, resource_type: str, current_state: Any) -> None:
        ...

    async def import_resource(self, resource_type: str, id: str) -> Sequence[ImportedResource]:
        raise SdkError(f"Import not supported for resource type: {resource_type}")

    # Data sources

    async def validate_data_source_config(
        self, data_source_type: str, config: Any
    ) -> Sequence[Diagnostic]:
        return []

    async def read_data_source(self, data_source_type: str, config: Any) -> Any:
        raise UnknownResourceError(f"Unknown data source type: {data_source_type}")
