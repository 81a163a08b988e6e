from __future__ import annotations

import pytest

from pkgs.plan_diff import ROOT_PATH, AttributeChange, PlanResult, change_set, diff


def test_create_emits_every_leaf_as_addition() -> None:
    result = diff(None, {"name": "t", "tags": ["a", "b"]})

    assert {change.path for change in result.changes} == {"name", "tags[0]", "tags[1]"}
    assert len(result.changes) == 3
    assert all(change.is_addition for change in result.changes)
    assert result.planned_state == {"name": "t", "tags": ["a", "b"]}
    assert result.requires_replace is False


def test_create_expands_nested_containers() -> None:
    result = diff(None, {"spec": {"ports": [{"name": "http", "port": 80}]}})
    assert change_set(result.changes) == change_set(
        [
            AttributeChange.added("spec.ports[0].name", "http"),
            AttributeChange.added("spec.ports[0].port", 80),
        ]
    )


def test_create_with_scalar_root_has_no_changes() -> None:
    result = diff(None, "just a string")
    assert result.changes == ()
    assert result.planned_state == "just a string"


def test_create_with_array_root_uses_bracket_paths() -> None:
    result = diff(None, [1, 2])
    assert [change.path for change in result.changes] == ["[0]", "[1]"]


def test_type_change_is_single_modification() -> None:
    result = diff({"value": 42}, {"value": "42"})

    assert len(result.changes) == 1
    (change,) = result.changes
    assert change.path == "value"
    assert change.before == 42
    assert change.after == "42"
    assert change.is_modification


def test_identical_states_produce_no_changes() -> None:
    state = {"name": "web", "tags": {"env": "prod"}, "ports": [80, 443], "enabled": True}
    result = diff(state, dict(state))
    assert result == PlanResult(planned_state=state)
    assert not result.has_changes


def test_numbers_compare_numerically() -> None:
    assert diff({"size": 1}, {"size": 1.0}).changes == ()


def test_bool_and_number_are_distinct() -> None:
    result = diff({"flag": 1}, {"flag": True})
    assert change_set(result.changes) == {("flag", "1", "true")}


def test_added_and_removed_keys() -> None:
    result = diff({"name": "web", "old": {"a": 1}}, {"name": "web", "new": [1, {"b": 2}]})
    assert change_set(result.changes) == change_set(
        [
            AttributeChange.removed("old.a", 1),
            AttributeChange.added("new[0]", 1),
            AttributeChange.added("new[1].b", 2),
        ]
    )


def test_nested_modification_recurses() -> None:
    result = diff({"spec": {"size": 1, "name": "a"}}, {"spec": {"size": 2, "name": "a"}})
    assert [(c.path, c.before, c.after) for c in result.changes] == [("spec.size", 1, 2)]


def test_array_growth_and_shrink() -> None:
    grown = diff({"ports": [80]}, {"ports": [80, 443]})
    assert [(c.path, c.before, c.after) for c in grown.changes] == [("ports[1]", None, 443)]

    shrunk = diff({"ports": [80, 443]}, {"ports": [80]})
    assert [(c.path, c.before, c.after) for c in shrunk.changes] == [("ports[1]", 443, None)]


def test_container_kind_change_is_one_modification() -> None:
    result = diff({"tags": ["a"]}, {"tags": {"a": True}})
    assert len(result.changes) == 1
    assert result.changes[0].path == "tags"
    assert result.changes[0].before == ["a"]
    assert result.changes[0].after == {"a": True}


def test_root_scalar_difference_uses_root_path() -> None:
    result = diff(1, 2)
    assert [(c.path, c.before, c.after) for c in result.changes] == [(ROOT_PATH, 1, 2)]
    assert ROOT_PATH == "(root)"


def test_root_container_kind_change_uses_root_path() -> None:
    result = diff({"a": 1}, [1])
    assert [change.path for change in result.changes] == [ROOT_PATH]


def test_add_remove_symmetry() -> None:
    value = {"name": "t", "tags": ["a", "b"], "spec": {"size": 3}}
    created = diff(None, value)
    removed = diff(value, {})

    assert {c.path for c in created.changes} == {c.path for c in removed.changes}
    assert change_set(removed.changes) == change_set(
        AttributeChange(path=c.path, before=c.after, after=c.before) for c in created.changes
    )
    assert all(change.is_removal for change in removed.changes)


def test_plan_result_helpers() -> None:
    result = PlanResult.with_changes({"a": 1}, [AttributeChange.modified("a", 0, 1)], requires_replace=True)
    assert result.requires_replace
    assert result.has_changes
    assert result.change_for("a") == AttributeChange.modified("a", 0, 1)
    assert result.change_for("b") is None
    assert PlanResult.no_change({"a": 1}).changes == ()


@pytest.mark.parametrize(
    ("change", "addition", "removal", "modification"),
    [
        (AttributeChange.added("a", 1), True, False, False),
        (AttributeChange.removed("a", 1), False, True, False),
        (AttributeChange.modified("a", 1, 2), False, False, True),
    ],
)
def test_change_kind_predicates(
    change: AttributeChange, addition: bool, removal: bool, modification: bool
) -> None:
    assert change.is_addition is addition
    assert change.is_removal is removal
    assert change.is_modification is modification
