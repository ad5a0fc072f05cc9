"""Tests for the group registry."""

import pytest

from qda_workbench.core.state.commands import add_tag, remove_mark, save_search
from qda_workbench.core.state.groups import (
    add_mark_to_group,
    create_group,
    delete_group,
    marks_in_group,
    remove_mark_from_group,
    save_group_as_tag,
    update_group_marks,
)
from qda_workbench.errors import ValidationError
from qda_workbench.models.project import AppState, MarkType, PermanentRef, Span
from tests.unit.fakes import PROJECT, build_state


@pytest.fixture
def tagged_state() -> AppState:
    """Two files with a Tag "Fruit" and a saved Search "pear"."""
    state = build_state({"a.txt": "apple and pear", "b.txt": "one pear"})
    state = add_tag(state, PROJECT, "a.txt", Span(0, 5), "Fruit")
    return save_search(state, PROJECT, "pear")


def _id(state: AppState, name: str, mark_type: MarkType) -> str:
    mark = state.project(PROJECT).find_mark(name, mark_type)
    assert mark is not None
    return mark.id


def test_create_group_starts_empty(tagged_state: AppState) -> None:
    state, group_id = create_group(tagged_state, PROJECT, " Food ")
    group = state.project(PROJECT).groups[group_id]
    assert group.name == "Food"
    assert group.marks == ()
    assert group.color.startswith("hsl(")
    assert group_id.startswith("group-food-")


def test_create_group_rejects_blank_name(tagged_state: AppState) -> None:
    with pytest.raises(ValidationError, match="empty"):
        create_group(tagged_state, PROJECT, "")


def test_add_and_remove_members(tagged_state: AppState) -> None:
    fruit = _id(tagged_state, "Fruit", MarkType.TAG)
    state, group_id = create_group(tagged_state, PROJECT, "Food")

    state = add_mark_to_group(state, PROJECT, group_id, fruit)
    assert add_mark_to_group(state, PROJECT, group_id, fruit) is state
    assert add_mark_to_group(state, PROJECT, group_id, "unknown") is state
    assert state.project(PROJECT).groups[group_id].marks == (fruit,)

    state = remove_mark_from_group(state, PROJECT, group_id, fruit)
    assert state.project(PROJECT).groups[group_id].marks == ()
    assert fruit in state.project(PROJECT).marks


def test_update_group_marks_dedupes_and_drops_unknown_ids(tagged_state: AppState) -> None:
    fruit = _id(tagged_state, "Fruit", MarkType.TAG)
    pear = _id(tagged_state, "pear", MarkType.SEARCH)
    state, group_id = create_group(tagged_state, PROJECT, "Food")

    state = update_group_marks(state, PROJECT, group_id, [pear, "ghost", fruit, pear])

    assert state.project(PROJECT).groups[group_id].marks == (pear, fruit)
    assert [m.name for m in marks_in_group(state.project(PROJECT), group_id)] == ["pear", "Fruit"]


def test_unknown_group_raises(tagged_state: AppState) -> None:
    with pytest.raises(ValidationError, match="Group"):
        update_group_marks(tagged_state, PROJECT, "nope", [])
    assert marks_in_group(tagged_state.project(PROJECT), "nope") == []


def test_delete_group_keeps_member_marks(tagged_state: AppState) -> None:
    fruit = _id(tagged_state, "Fruit", MarkType.TAG)
    state, group_id = create_group(tagged_state, PROJECT, "Food")
    state = add_mark_to_group(state, PROJECT, group_id, fruit)

    state = delete_group(state, PROJECT, group_id)

    assert state.project(PROJECT).groups == {}
    assert fruit in state.project(PROJECT).marks


def test_save_group_as_tag_copies_every_member_occurrence(tagged_state: AppState) -> None:
    fruit = _id(tagged_state, "Fruit", MarkType.TAG)
    pear = _id(tagged_state, "pear", MarkType.SEARCH)
    state, group_id = create_group(tagged_state, PROJECT, "Food")
    state = update_group_marks(state, PROJECT, group_id, [fruit, pear])

    state, tag_id = save_group_as_tag(state, PROJECT, group_id, "Produce")

    project = state.project(PROJECT)
    assert project.marks[tag_id].type == MarkType.TAG
    assert project.marks[tag_id].name == "Produce"
    ref = PermanentRef(tag_id)
    a_spans = [(o.start, o.end) for o in project.files["a.txt"].occurrences if o.ref == ref]
    b_spans = [(o.start, o.end) for o in project.files["b.txt"].occurrences if o.ref == ref]
    assert a_spans == [(0, 5), (10, 14)]
    assert b_spans == [(4, 8)]


def test_saved_group_tag_survives_member_removal(tagged_state: AppState) -> None:
    fruit = _id(tagged_state, "Fruit", MarkType.TAG)
    state, group_id = create_group(tagged_state, PROJECT, "Food")
    state = add_mark_to_group(state, PROJECT, group_id, fruit)
    state, tag_id = save_group_as_tag(state, PROJECT, group_id, "Produce")

    state = remove_mark(state, PROJECT, fruit)

    occs = state.project(PROJECT).files["a.txt"].occurrences
    assert [(o.mark_id, o.start, o.end) for o in occs if o.mark_id == tag_id] == [(tag_id, 0, 5)]


def test_save_group_as_tag_rejects_existing_or_blank_name(tagged_state: AppState) -> None:
    state, group_id = create_group(tagged_state, PROJECT, "Food")
    with pytest.raises(ValidationError, match="already exists"):
        save_group_as_tag(state, PROJECT, group_id, "fruit")
    with pytest.raises(ValidationError, match="empty"):
        save_group_as_tag(state, PROJECT, group_id, " ")
