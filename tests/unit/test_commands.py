"""Tests for mark and occurrence commands."""

import pytest

from qda_workbench.core.state.commands import (
    add_tag,
    apply_synonyms,
    clear_search_term,
    dedupe_occurrences,
    refresh_all_searches,
    remove_mark,
    remove_occurrence,
    remove_search_by_name,
    rename_mark,
    save_search,
    set_search_term,
)
from qda_workbench.core.state.groups import create_group, update_group_marks
from qda_workbench.core.state.projects import edit_content
from qda_workbench.errors import ValidationError
from qda_workbench.models.project import (
    AppState,
    Expansion,
    MarkType,
    Occurrence,
    PendingRef,
    PermanentRef,
    Span,
)
from tests.unit.fakes import PROJECT, build_state


def _keys(state: AppState, file_name: str) -> list[tuple[object, int, int]]:
    return [o.key for o in state.project(PROJECT).files[file_name].occurrences]


def _mark_id(state: AppState, name: str, mark_type: MarkType) -> str:
    mark = state.project(PROJECT).find_mark(name, mark_type)
    assert mark is not None
    return mark.id


def test_dedupe_keeps_first_of_each_key() -> None:
    a = Occurrence(ref=PermanentRef("m"), start=0, end=3, text="first")
    b = Occurrence(ref=PermanentRef("m"), start=0, end=3, text="second")
    c = Occurrence(ref=PermanentRef("m"), start=1, end=3, text="other")
    assert dedupe_occurrences([a, b, c]) == (a, c)


def test_add_tag_creates_mark_and_occurrence() -> None:
    state = build_state({"a.txt": "hello world"})
    state = add_tag(state, PROJECT, "a.txt", Span(6, 11), " Place ")

    project = state.project(PROJECT)
    [mark] = project.marks.values()
    assert mark.type == MarkType.TAG
    assert mark.name == "Place"
    assert mark.id.startswith("tag-place-")
    assert mark.color.startswith("hsl(")
    [occ] = project.files["a.txt"].occurrences
    assert (occ.ref, occ.start, occ.end, occ.text) == (PermanentRef(mark.id), 6, 11, "world")


def test_add_tag_reuses_mark_by_case_insensitive_name() -> None:
    state = build_state({"a.txt": "hello world"})
    state = add_tag(state, PROJECT, "a.txt", Span(0, 5), "Word")
    state = add_tag(state, PROJECT, "a.txt", Span(6, 11), "word")
    project = state.project(PROJECT)
    assert len(project.marks) == 1
    assert len(project.files["a.txt"].occurrences) == 2


@pytest.mark.parametrize(
    ("span", "label"),
    [(None, "Word"), (Span(3, 3), "Word"), (Span(0, 5), "   "), (Span(0, 99), "Word")],
)
def test_add_tag_without_usable_selection_is_a_no_op(span: Span | None, label: str) -> None:
    state = build_state({"a.txt": "hello world"})
    assert add_tag(state, PROJECT, "a.txt", span, label) is state


def test_add_tag_to_unknown_file_raises() -> None:
    with pytest.raises(ValidationError, match="not found"):
        add_tag(build_state({"a.txt": "x"}), PROJECT, "b.txt", Span(0, 1), "X")


def test_repeated_operations_never_duplicate_occurrences() -> None:
    state = build_state({"a.txt": "cat and cat"})
    state = add_tag(state, PROJECT, "a.txt", Span(0, 3), "Animal")
    state = add_tag(state, PROJECT, "a.txt", Span(0, 3), "Animal")
    state = save_search(state, PROJECT, "cat", expansion=Expansion.NONE)
    state = save_search(state, PROJECT, "cat", expansion=Expansion.NONE)
    state = refresh_all_searches(state, PROJECT, expansion=Expansion.NONE)
    tag_id = _mark_id(state, "Animal", MarkType.TAG)
    state = remove_occurrence(state, PROJECT, "a.txt", tag_id, Span(0, 3))
    state = add_tag(state, PROJECT, "a.txt", Span(0, 3), "Animal")

    keys = _keys(state, "a.txt")
    assert len(keys) == len(set(keys)) == 3


def test_set_search_term_adds_pending_occurrences() -> None:
    state = set_search_term(build_state({"a.txt": "Cat cat"}), PROJECT, "a.txt", " cat ")
    occs = state.project(PROJECT).files["a.txt"].occurrences
    assert [(o.ref, o.start, o.end, o.text) for o in occs] == [
        (PendingRef("cat"), 0, 3, "Cat"),
        (PendingRef("cat"), 4, 7, "cat"),
    ]
    assert state.project(PROJECT).marks == {}


def test_set_search_term_replaces_previous_pending_occurrences() -> None:
    state = build_state({"a.txt": "cat dog"})
    state = set_search_term(state, PROJECT, "a.txt", "cat")
    state = set_search_term(state, PROJECT, "a.txt", "dog")
    [occ] = state.project(PROJECT).files["a.txt"].occurrences
    assert occ.ref == PendingRef("dog")

    cleared = clear_search_term(state, PROJECT, "a.txt")
    assert cleared.project(PROJECT).files["a.txt"].occurrences == ()


def test_set_search_term_for_saved_search_adds_nothing() -> None:
    state = save_search(build_state({"a.txt": "cat"}), PROJECT, "cat")
    after = set_search_term(state, PROJECT, "a.txt", "CAT")
    assert not any(o.is_pending for o in after.project(PROJECT).files["a.txt"].occurrences)


def test_save_search_indexes_every_file_and_replaces_pending() -> None:
    state = build_state({"a.txt": "x y x", "b.txt": "no match", "c.txt": "X"})
    state = set_search_term(state, PROJECT, "a.txt", "x")
    state = save_search(state, PROJECT, "x", expansion=Expansion.NONE)

    project = state.project(PROJECT)
    search_id = _mark_id(state, "x", MarkType.SEARCH)
    a_occs = project.files["a.txt"].occurrences
    assert [(o.ref, o.start) for o in a_occs] == [
        (PermanentRef(search_id), 0),
        (PermanentRef(search_id), 4),
    ]
    assert project.files["b.txt"].occurrences == ()
    assert len(project.files["c.txt"].occurrences) == 1


def test_save_search_twice_is_a_no_op() -> None:
    state = save_search(build_state({"a.txt": "x"}), PROJECT, "x")
    assert save_search(state, PROJECT, "X") is state


def test_save_search_creates_mark_without_hits() -> None:
    state = save_search(build_state({"a.txt": "abc"}), PROJECT, "zzz")
    assert state.project(PROJECT).find_mark("zzz", MarkType.SEARCH) is not None


def test_save_search_rejects_blank_term() -> None:
    with pytest.raises(ValidationError, match="empty"):
        save_search(build_state({"a.txt": "abc"}), PROJECT, "  ")


def test_save_search_applies_expansion() -> None:
    state = save_search(
        build_state({"a.txt": "One cat. Two dogs."}), PROJECT, "cat", expansion=Expansion.SENTENCE
    )
    [occ] = state.project(PROJECT).files["a.txt"].occurrences
    assert occ.text == "One cat"


def test_remove_mark_cascades_to_files_and_groups() -> None:
    state = build_state({"a.txt": "cat cat", "b.txt": "cat"})
    state = add_tag(state, PROJECT, "a.txt", Span(0, 3), "Animal")
    state = save_search(state, PROJECT, "cat")
    tag_id = _mark_id(state, "Animal", MarkType.TAG)
    search_id = _mark_id(state, "cat", MarkType.SEARCH)
    state, group_id = create_group(state, PROJECT, "Both")
    state = update_group_marks(state, PROJECT, group_id, [tag_id, search_id])

    state = remove_mark(state, PROJECT, search_id)

    project = state.project(PROJECT)
    assert search_id not in project.marks
    for text_file in project.files.values():
        assert all(o.mark_id != search_id for o in text_file.occurrences)
    assert project.groups[group_id].marks == (tag_id,)
    assert len(project.files["a.txt"].occurrences) == 1


def test_remove_unknown_mark_returns_state_unchanged() -> None:
    state = build_state({"a.txt": "x"})
    assert remove_mark(state, PROJECT, "nope") is state


def test_remove_search_by_name_matches_exact_name_only() -> None:
    state = save_search(build_state({"a.txt": "cat"}), PROJECT, "cat")
    assert remove_search_by_name(state, PROJECT, "CAT") is state
    removed = remove_search_by_name(state, PROJECT, "cat")
    assert removed.project(PROJECT).marks == {}


def test_remove_occurrence_keeps_mark_definition() -> None:
    state = add_tag(build_state({"a.txt": "hello"}), PROJECT, "a.txt", Span(0, 5), "Greeting")
    tag_id = _mark_id(state, "Greeting", MarkType.TAG)

    state = remove_occurrence(state, PROJECT, "a.txt", tag_id, Span(0, 5))

    assert state.project(PROJECT).files["a.txt"].occurrences == ()
    assert tag_id in state.project(PROJECT).marks


def test_refresh_after_edit_updates_counts_without_duplicates() -> None:
    state = save_search(build_state({"a.txt": "x y"}), PROJECT, "x", expansion=Expansion.NONE)
    state = edit_content(state, PROJECT, "a.txt", "x y x y x")
    state = refresh_all_searches(state, PROJECT, expansion=Expansion.NONE)

    occs = state.project(PROJECT).files["a.txt"].occurrences
    assert [o.start for o in occs] == [0, 4, 8]
    assert len({o.key for o in occs}) == 3


def test_refresh_leaves_tag_occurrences_alone() -> None:
    state = add_tag(build_state({"a.txt": "hello"}), PROJECT, "a.txt", Span(0, 5), "Greeting")
    state = edit_content(state, PROJECT, "a.txt", "bye")
    state = refresh_all_searches(state, PROJECT)
    [occ] = state.project(PROJECT).files["a.txt"].occurrences
    assert (occ.start, occ.end, occ.text) == (0, 5, "hello")


def test_rename_mark() -> None:
    state = add_tag(build_state({"a.txt": "hello"}), PROJECT, "a.txt", Span(0, 5), "Greeting")
    tag_id = _mark_id(state, "Greeting", MarkType.TAG)
    state = rename_mark(state, PROJECT, tag_id, "Salutation")
    assert state.project(PROJECT).marks[tag_id].name == "Salutation"


def test_rename_mark_rejects_duplicate_and_blank_names() -> None:
    state = build_state({"a.txt": "hello"})
    state = add_tag(state, PROJECT, "a.txt", Span(0, 2), "One")
    state = add_tag(state, PROJECT, "a.txt", Span(2, 4), "Two")
    one = _mark_id(state, "One", MarkType.TAG)

    with pytest.raises(ValidationError, match="already exists"):
        rename_mark(state, PROJECT, one, "two")
    with pytest.raises(ValidationError, match="empty"):
        rename_mark(state, PROJECT, one, " ")
    with pytest.raises(ValidationError, match="not found"):
        rename_mark(state, PROJECT, "missing", "Three")


def test_apply_synonyms_saves_each_word_as_search() -> None:
    state = build_state({"a.txt": "feline kitty cat"})
    state = apply_synonyms(state, PROJECT, ["feline", " ", "kitty"], expansion=Expansion.NONE)
    names = sorted(m.name for m in state.project(PROJECT).marks_of_type(MarkType.SEARCH))
    assert names == ["feline", "kitty"]
    assert len(state.project(PROJECT).files["a.txt"].occurrences) == 2
