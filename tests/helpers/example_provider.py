"""In-memory providers shared by the test-suite."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Sequence
from typing import Any

from apps.provider_server import (
    AlreadyExistsError,
    ImportedResource,
    NotFoundError,
    ProviderService,
    SdkError,
    UnknownResourceError,
)
from pkgs.plan_diff import PlanResult, diff
from pkgs.provider_schema import (
    OPTIONAL,
    STRING,
    Attribute,
    Block,
    Diagnostic,
    NestedBlock,
    ProviderSchema,
    Schema,
    map_of,
    validate,
)

SERVER_SCHEMA = (
    Schema.v0()
    .with_description("A virtual server")
    .with_attribute("name", Attribute.required_string().with_description("Server name"))
    .with_attribute("image", Attribute.required_string().with_force_new())
    .with_attribute("size", Attribute.optional_int64().with_default(1))
    .with_attribute("id", Attribute.computed_string())
    .with_attribute("tags", Attribute(map_of(STRING), OPTIONAL))
    .with_block(
        "ingress",
        NestedBlock.list(Block().with_attribute("port", Attribute.required_int64())).with_max_items(3),
    )
)

IMAGE_SCHEMA = Schema.v0().with_attribute("name", Attribute.required_string()).with_attribute(
    "id", Attribute.computed_string()
)

EXAMPLE_SCHEMA = (
    ProviderSchema()
    .with_provider_config(
        Schema.v0().with_attribute("region", Attribute.optional_string()).with_attribute(
            "token", Attribute.optional_string().as_sensitive()
        )
    )
    .with_resource("example_server", SERVER_SCHEMA)
    .with_data_source("example_image", IMAGE_SCHEMA)
)


class ExampleProvider(ProviderService):
    """Keeps servers in a dict keyed by generated id."""

    def __init__(self) -> None:
        self.servers: dict[str, dict[str, Any]] = {}
        self.region: str | None = None
        self.stop_calls = 0
        self._ids = itertools.count(1)

    def schema(self) -> ProviderSchema:
        return EXAMPLE_SCHEMA

    def _resource_schema(self, resource_type: str) -> Schema:
        try:
            return EXAMPLE_SCHEMA.resources[resource_type]
        except KeyError:
            raise UnknownResourceError(resource_type) from None

    async def validate_provider_config(self, config: Any) -> Sequence[Diagnostic]:
        return validate(EXAMPLE_SCHEMA.provider, config)

    async def configure(self, config: Any) -> Sequence[Diagnostic]:
        config = config or {}
        region = config.get("region")
        if region is None:
            self.region = "local"
            return [Diagnostic.warning("No region configured, using 'local'").with_attribute("region")]
        if region == "nowhere":
            return [Diagnostic.error("Unknown region 'nowhere'").with_attribute("region")]
        self.region = region
        return []

    async def stop(self) -> None:
        self.stop_calls += 1

    async def validate_resource_config(self, resource_type: str, config: Any) -> Sequence[Diagnostic]:
        return validate(self._resource_schema(resource_type), config)

    async def plan(
        self, resource_type: str, prior_state: Any | None, proposed_state: Any, config: Any
    ) -> PlanResult:
        schema = self._resource_schema(resource_type)
        result = diff(prior_state, proposed_state)
        if prior_state is None or proposed_state is None:
            return result
        force_new = {name for name, attribute in schema.block.attributes.items() if attribute.force_new}
        replace = any(change.path.split(".")[0] in force_new for change in result.changes)
        return PlanResult.with_changes(result.planned_state, result.changes, requires_replace=replace)

    async def create(self, resource_type: str, planned_state: Any) -> Any:
        self._resource_schema(resource_type)
        name = planned_state["name"]
        if any(server["name"] == name for server in self.servers.values()):
            raise AlreadyExistsError(f"server {name!r}")
        server_id = f"srv-{next(self._ids)}"
        state = {**planned_state, "id": server_id}
        self.servers[server_id] = state
        return dict(state)

    async def read(self, resource_type: str, current_state: Any) -> Any:
        server_id = (current_state or {}).get("id")
        if server_id not in self.servers:
            raise NotFoundError(f"server {server_id}")
        return dict(self.servers[server_id])

    async def update(self, resource_type: str, prior_state: Any, planned_state: Any) -> Any:
        server_id = prior_state["id"]
        if server_id not in self.servers:
            raise NotFoundError(f"server {server_id}")
        state = {**planned_state, "id": server_id}
        self.servers[server_id] = state
        return dict(state)

    async def delete(self, resource_type: str, current_state: Any) -> None:
        server_id = current_state["id"]
        if self.servers.pop(server_id, None) is None:
            raise NotFoundError(f"server {server_id}")

    async def import_resource(self, resource_type: str, id: str) -> Sequence[ImportedResource]:
        if resource_type != "example_server":
            return await super().import_resource(resource_type, id)
        if id not in self.servers:
            raise NotFoundError(f"server {id}")
        return [ImportedResource(resource_type=resource_type, state=dict(self.servers[id]))]

    async def upgrade_resource_state(self, resource_type: str, version: int, state: Any) -> Any:
        if version == 0 and isinstance(state, dict) and "flavor" in state:
            upgraded = dict(state)
            upgraded["size"] = upgraded.pop("flavor")
            return upgraded
        return state

    async def read_data_source(self, data_source_type: str, config: Any) -> Any:
        if data_source_type != "example_image":
            return await super().read_data_source(data_source_type, config)
        return {"name": config["name"], "id": f"img-{config['name']}"}


class MinimalProvider(ProviderService):
    """Implements only the abstract operations."""

    def schema(self) -> ProviderSchema:
        return ProviderSchema().with_resource("thing", Schema.v0())

    async def configure(self, config: Any) -> Sequence[Diagnostic]:
        return []

    async def plan(
        self, resource_type: str, prior_state: Any | None, proposed_state: Any, config: Any
    ) -> PlanResult:
        return diff(prior_state, proposed_state)

    async def create(self, resource_type: str, planned_state: Any) -> Any:
        return planned_state

    async def read(self, resource_type: str, current_state: Any) -> Any:
        return current_state

    async def update(self, resource_type: str, prior_state: Any, planned_state: Any) -> Any:
        return planned_state

    async def delete(self, resource_type: str, current_state: Any) -> None:
        return None


class GatedProvider(MinimalProvider):
    """``create`` blocks until ``release`` is set; used to exercise draining."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.stop_calls = 0
        self.completed = 0

    async def create(self, resource_type: str, planned_state: Any) -> Any:
        self.started.set()
        await self.release.wait()
        self.completed += 1
        return planned_state

    async def stop(self) -> None:
        self.stop_calls += 1


class FailingStopProvider(MinimalProvider):
    def __init__(self) -> None:
        self.stop_calls = 0

    async def stop(self) -> None:
        self.stop_calls += 1
        raise SdkError("stop exploded")


def build_example_provider() -> ExampleProvider:
    return ExampleProvider()


SHARED_EXAMPLE_PROVIDER = ExampleProvider()
