"""Structural diff between a prior and a proposed resource state.

States are JSON-like trees (``dict``/``list``/scalars). Paths use dot notation
for object fields and brackets for array indices, e.g. ``spec.ports[0].name``.
A difference between two scalars at the very top of the tree is reported at
:data:`ROOT_PATH`.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

__all__ = ["ROOT_PATH", "AttributeChange", "PlanResult", "change_set", "diff"]

ROOT_PATH = "(root)"


@dataclass(frozen=True, slots=True)
class AttributeChange:
    """A single leaf-level change.

    ``before is None`` marks an addition and ``after is None`` a removal. A JSON
    ``null`` leaf is therefore indistinguishable from an absent side.
    """

    path: str
    before: Any = None
    after: Any = None

    @classmethod
    def added(cls, path: str, value: Any) -> AttributeChange:
        return cls(path=path, after=value)

    @classmethod
    def removed(cls, path: str, value: Any) -> AttributeChange:
        return cls(path=path, before=value)

    @classmethod
    def modified(cls, path: str, before: Any, after: Any) -> AttributeChange:
        return cls(path=path, before=before, after=after)

    @property
    def is_addition(self) -> bool:
        return self.before is None and self.after is not None

    @property
    def is_removal(self) -> bool:
        return self.before is not None and self.after is None

    @property
    def is_modification(self) -> bool:
        return self.before is not None and self.after is not None


@dataclass(frozen=True, slots=True)
class PlanResult:
    planned_state: Any
    changes: tuple[AttributeChange, ...] = field(default_factory=tuple)
    requires_replace: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "changes", tuple(self.changes))

    @classmethod
    def no_change(cls, state: Any) -> PlanResult:
        return cls(planned_state=state)

    @classmethod
    def with_changes(
        cls,
        planned_state: Any,
        changes: Iterable[AttributeChange],
        *,
        requires_replace: bool = False,
    ) -> PlanResult:
        return cls(
            planned_state=planned_state,
            changes=tuple(changes),
            requires_replace=requires_replace,
        )

    @classmethod
    def from_diff(cls, prior: Any | None, proposed: Any) -> PlanResult:
        """Diff ``prior`` against ``proposed``; ``prior=None`` means create.

        Replacement is never inferred here. Providers that honour
        ``force_new`` attributes set ``requires_replace`` themselves.
        """

        if prior is None:
            changes = list(_collect_leaves("", proposed))
        else:
            changes = list(_compare("", prior, proposed))
        return cls(planned_state=proposed, changes=tuple(changes))

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def change_for(self, path: str) -> AttributeChange | None:
        for change in self.changes:
            if change.path == path:
                return change
        return None


def diff(prior: Any | None, proposed: Any) -> PlanResult:
    return PlanResult.from_diff(prior, proposed)


def change_set(changes: Iterable[AttributeChange]) -> frozenset[tuple[str, str, str]]:
    """Order-independent view of ``changes`` for comparisons."""

    return frozenset(
        (change.path, _canonical(change.before), _canonical(change.after)) for change in changes
    )


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def _is_object(value: Any) -> bool:
    return isinstance(value, Mapping)


def _is_array(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _is_container(value: Any) -> bool:
    return _is_object(value) or _is_array(value)


def _same_container_kind(left: Any, right: Any) -> bool:
    return (_is_object(left) and _is_object(right)) or (_is_array(left) and _is_array(right))


def _json_equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_object(left) and _is_object(right):
        return left.keys() == right.keys() and all(
            _json_equal(left[key], right[key]) for key in left
        )
    if _is_array(left) and _is_array(right):
        return len(left) == len(right) and all(
            _json_equal(a, b) for a, b in zip(left, right)
        )
    if _is_container(left) or _is_container(right):
        return False
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    return type(left) is type(right) and left == right


def _field_path(prefix: str, key: object) -> str:
    return f"{prefix}.{key}" if prefix else str(key)


def _index_path(prefix: str, index: int) -> str:
    return f"{prefix}[{index}]"


def _children(prefix: str, value: Any) -> Iterator[tuple[str, Any]]:
    if _is_object(value):
        for key, child in value.items():
            yield _field_path(prefix, key), child
    else:
        for index, child in enumerate(value):
            yield _index_path(prefix, index), child


def _collect_leaves(prefix: str, value: Any) -> Iterator[AttributeChange]:
    if not _is_container(value):
        if prefix:
            yield AttributeChange.added(prefix, value)
        return
    for path, child in _children(prefix, value):
        if _is_container(child):
            yield from _collect_leaves(path, child)
        else:
            yield AttributeChange.added(path, child)


def _added(path: str, value: Any) -> Iterator[AttributeChange]:
    if _is_container(value):
        yield from _collect_leaves(path, value)
    else:
        yield AttributeChange.added(path, value)


def _removed(path: str, value: Any) -> Iterator[AttributeChange]:
    for change in _added(path, value):
        yield AttributeChange.removed(change.path, change.after)


def _changed(path: str, before: Any, after: Any) -> Iterator[AttributeChange]:
    if _json_equal(before, after):
        return
    if _same_container_kind(before, after):
        yield from _compare(path, before, after)
    else:
        yield AttributeChange.modified(path, before, after)


def _compare(prefix: str, prior: Any, proposed: Any) -> Iterator[AttributeChange]:
    if _json_equal(prior, proposed):
        return
    if _is_object(prior) and _is_object(proposed):
        keys = list(prior.keys())
        keys.extend(key for key in proposed.keys() if key not in prior)
        for key in keys:
            path = _field_path(prefix, key)
            if key not in proposed:
                yield from _removed(path, prior[key])
            elif key not in prior:
                yield from _added(path, proposed[key])
            else:
                yield from _changed(path, prior[key], proposed[key])
    elif _is_array(prior) and _is_array(proposed):
        for index in range(max(len(prior), len(proposed))):
            path = _index_path(prefix, index)
            if index >= len(proposed):
                yield from _removed(path, prior[index])
            elif index >= len(prior):
                yield from _added(path, proposed[index])
            else:
                yield from _changed(path, prior[index], proposed[index])
    else:
        yield AttributeChange.modified(prefix or ROOT_PATH, prior, proposed)
