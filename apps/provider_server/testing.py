"""Helpers for unit-testing provider implementations without a server.

:class:`ProviderTester` calls a :class:`ProviderService` directly. Validation
and configure steps raise :class:`DiagnosticsError` when the provider reports
error diagnostics; warnings never fail a step. Provider exceptions propagate
unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from pkgs.plan_diff import PlanResult
from pkgs.provider_schema import Diagnostic, ProviderSchema

from .protocol import ImportedResource
from .provider import ProviderService

__all__ = [
    "DiagnosticsError",
    "ProviderTester",
    "assert_error_contains",
    "assert_has_errors",
    "assert_no_errors",
    "assert_plan_changes_attribute",
    "assert_plan_creates",
    "assert_plan_does_not_change_attribute",
    "assert_plan_has_changes",
    "assert_plan_no_changes",
    "assert_plan_replaces",
    "assert_plan_updates_in_place",
]


class DiagnosticsError(Exception):
    """A validate or configure step returned error diagnostics."""

    def __init__(self, diagnostics: Sequence[Diagnostic]) -> None:
        self.diagnostics = tuple(diagnostics)
        super().__init__(self._render())

    def _render(self) -> str:
        lines = [f"Operation failed with {len(self.diagnostics)} diagnostic(s):"]
        for diagnostic in self.diagnostics:
            line = f"  [{diagnostic.severity.value}] {diagnostic.summary}"
            if diagnostic.detail:
                line += f": {diagnostic.detail}"
            if diagnostic.attribute_path:
                line += f" (at {diagnostic.attribute_path})"
            lines.append(line)
        return "\n".join(lines)


def _raise_on_errors(diagnostics: Iterable[Diagnostic]) -> None:
    errors = [diagnostic for diagnostic in diagnostics if diagnostic.is_error]
    if errors:
        raise DiagnosticsError(errors)


class ProviderTester:
    def __init__(self, provider: ProviderService) -> None:
        self.provider = provider

    # Schema

    def schema(self) -> ProviderSchema:
        return self.provider.schema()

    def resource_types(self) -> list[str]:
        return list(self.schema().resources)

    def data_source_types(self) -> list[str]:
        return list(self.schema().data_sources)

    # Provider lifecycle

    async def validate_provider_config(self, config: Any) -> None:
        _raise_on_errors(await self.provider.validate_provider_config(config))

    async def configure(self, config: Any) -> None:
        _raise_on_errors(await self.provider.configure(config))

    async def stop(self) -> None:
        await self.provider.stop()

    # Resources

    async def validate_resource_config(self, resource_type: str, config: Any) -> None:
        _raise_on_errors(await self.provider.validate_resource_config(resource_type, config))

    async def plan_create(self, resource_type: str, config: Any) -> PlanResult:
        return await self.provider.plan(resource_type, None, config, config)

    async def plan_update(self, resource_type: str, prior_state: Any, proposed_state: Any) -> PlanResult:
        return await self.provider.plan(resource_type, prior_state, proposed_state, proposed_state)

    async def plan_delete(self, resource_type: str, current_state: Any) -> PlanResult:
        return await self.provider.plan(resource_type, current_state, None, None)

    async def plan(
        self, resource_type: str, prior_state: Any | None, proposed_state: Any, config: Any
    ) -> PlanResult:
        return await self.provider.plan(resource_type, prior_state, proposed_state, config)

    async def create(self, resource_type: str, planned_state: Any) -> Any:
        return await self.provider.create(resource_type, planned_state)

    async def read(self, resource_type: str, current_state: Any) -> Any:
        return await self.provider.read(resource_type, current_state)

    async def update(self, resource_type: str, prior_state: Any, planned_state: Any) -> Any:
        return await self.provider.update(resource_type, prior_state, planned_state)

    async def delete(self, resource_type: str, current_state: Any) -> None:
        await self.provider.delete(resource_type, current_state)

    async def import_resource(self, resource_type: str, id: str) -> list[ImportedResource]:
        return list(await self.provider.import_resource(resource_type, id))

    async def upgrade_resource_state(self, resource_type: str, version: int, state: Any) -> Any:
        return await self.provider.upgrade_resource_state(resource_type, version, state)

    # Data sources

    async def validate_data_source_config(self, data_source_type: str, config: Any) -> None:
        _raise_on_errors(await self.provider.validate_data_source_config(data_source_type, config))

    async def read_data_source(self, data_source_type: str, config: Any) -> Any:
        return await self.provider.read_data_source(data_source_type, config)

    # Lifecycles

    async def lifecycle_create(self, resource_type: str, config: Any) -> Any:
        """Plan, create, then read back; return the state read."""

        plan = await self.plan_create(resource_type, config)
        created = await self.create(resource_type, plan.planned_state)
        return await self.read(resource_type, created)

    async def lifecycle_update(self, resource_type: str, prior_state: Any, proposed_state: Any) -> Any:
        plan = await self.plan_update(resource_type, prior_state, proposed_state)
        updated = await self.update(resource_type, prior_state, plan.planned_state)
        return await self.read(resource_type, updated)

    async def lifecycle_delete(self, resource_type: str, current_state: Any) -> None:
        await self.plan_delete(resource_type, current_state)
        await self.delete(resource_type, current_state)

    async def lifecycle_crud(self, resource_type: str, initial_config: Any, updated_config: Any) -> Any:
        """Create, update and delete; return the state observed after the update."""

        created = await self.lifecycle_create(resource_type, initial_config)
        updated = await self.lifecycle_update(resource_type, created, updated_config)
        await self.lifecycle_delete(resource_type, updated)
        return updated


# Assertions


def _paths(plan: PlanResult) -> list[str]:
    return [change.path for change in plan.changes]


def assert_plan_creates(plan: PlanResult) -> None:
    assert plan.changes, "Expected plan to have changes for create, but got no changes"
    assert not plan.requires_replace, "Expected plan to create, not replace"


def assert_plan_no_changes(plan: PlanResult) -> None:
    assert not plan.changes, f"Expected no changes, but got {len(plan.changes)} change(s): {_paths(plan)}"


def assert_plan_has_changes(plan: PlanResult) -> None:
    assert plan.changes, "Expected plan to have changes, but got no changes"


def assert_plan_replaces(plan: PlanResult) -> None:
    assert plan.requires_replace, "Expected plan to require replacement, but it does not"


def assert_plan_updates_in_place(plan: PlanResult) -> None:
    assert not plan.requires_replace, "Expected plan to update in place, but it requires replacement"


def assert_plan_changes_attribute(plan: PlanResult, path: str) -> None:
    assert path in _paths(plan), (
        f"Expected plan to change attribute '{path}', but it was not changed. "
        f"Changed attributes: {_paths(plan)}"
    )


def assert_plan_does_not_change_attribute(plan: PlanResult, path: str) -> None:
    assert path not in _paths(plan), f"Expected plan to not change attribute '{path}', but it was changed"


def _error_summaries(diagnostics: Iterable[Diagnostic]) -> list[str]:
    return [diagnostic.summary for diagnostic in diagnostics if diagnostic.is_error]


def assert_no_errors(diagnostics: Sequence[Diagnostic]) -> None:
    errors = _error_summaries(diagnostics)
    assert not errors, f"Expected no errors, but got {len(errors)} error(s): {errors}"


def assert_has_errors(diagnostics: Sequence[Diagnostic]) -> None:
    assert _error_summaries(diagnostics), "Expected at least one error, but got none"


def assert_error_contains(diagnostics: Sequence[Diagnostic], substring: str) -> None:
    errors = _error_summaries(diagnostics)
    assert any(substring in summary for summary in errors), (
        f"Expected an error containing '{substring}', but no matching error found. Errors: {errors}"
    )
