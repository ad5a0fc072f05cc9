"""Tests for snapshot serialization, legacy conversion and export."""

import json
from pathlib import Path

import pytest

from qda_workbench.core.importer.snapshot import (
    dump_snapshot,
    dump_state,
    export_snapshot,
    parse_snapshot,
    parse_state,
    slugify,
)
from qda_workbench.core.state.commands import set_search_term
from qda_workbench.core.state.groups import create_group, update_group_marks
from qda_workbench.core.state.projects import default_state
from qda_workbench.errors import SnapshotParseError
from qda_workbench.models.project import AppState, MarkType, PermanentRef
from tests.unit.fakes import PROJECT


def test_snapshot_round_trip_preserves_state(cat_state: AppState) -> None:
    project = cat_state.project(PROJECT)
    state, group_id = create_group(cat_state, PROJECT, "All", color="green")
    state = update_group_marks(state, PROJECT, group_id, list(project.marks))

    assert parse_snapshot(dump_snapshot(state)) == state


def test_dump_uses_nested_snapshot_layout(cat_state: AppState) -> None:
    data = dump_state(cat_state)
    project = data[PROJECT]
    assert set(project) == {"files", "marks", "groups"}
    occ = project["files"]["cats.txt"]["occurrences"][0]
    assert set(occ) == {"id", "start", "end", "text"}
    assert {m["type"] for m in project["marks"].values()} == {"Tag", "Search"}


def test_dump_omits_pending_occurrences(cat_state: AppState) -> None:
    state = set_search_term(cat_state, PROJECT, "cats.txt", "mat")
    occurrences = dump_state(state)[PROJECT]["files"]["cats.txt"]["occurrences"]
    assert len(occurrences) == 3
    assert "mat" not in {o["text"] for o in occurrences}


def test_dirty_flag_written_only_when_known() -> None:
    data = dump_state(default_state())
    [file_data] = data["Text Analysis Project"]["files"].values()
    assert "dirty" not in file_data

    state = parse_state({"P": {"files": {"a.txt": {"content": "x", "dirty": True}}}})
    assert state.project("P").files["a.txt"].dirty is True
    assert dump_state(state)["P"]["files"]["a.txt"]["dirty"] is True


def test_legacy_snapshot_is_converted() -> None:
    legacy = {
        "projectName": "Old Study",
        "files": {"a.txt": {"content": "hello world", "dirty": False}, "gone.txt": None},
        "tags": {
            "tag-1": {
                "text": "Greeting",
                "color": "red",
                "occurrences": [
                    {"fileId": "a.txt", "start": 0, "end": 5, "text": "hello"},
                    {"fileId": "missing.txt", "start": 0, "end": 1, "text": "x"},
                ],
            },
            "tag-2": {"type": "Search", "text": "world", "occurrences": []},
        },
    }
    state = parse_state(legacy)

    project = state.project("Old Study")
    assert list(project.files) == ["a.txt"]
    assert project.marks["tag-1"].name == "Greeting"
    assert project.marks["tag-1"].type == MarkType.TAG
    assert project.marks["tag-2"].type == MarkType.SEARCH
    assert project.marks["tag-2"].color.startswith("hsl(")
    [occ] = project.files["a.txt"].occurrences
    assert (occ.ref, occ.start, occ.end, occ.text) == (PermanentRef("tag-1"), 0, 5, "hello")


def test_group_without_color_gets_one() -> None:
    state = parse_state({"P": {"groups": {"g": {"name": "G", "marks": []}}}})
    assert state.project("P").groups["g"].color.startswith("hsl(")


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[1, 2]",
        json.dumps({"P": {"marks": {"m": {"type": "Bogus", "name": "x"}}}}),
        json.dumps({"P": {"files": {"a.txt": {"content": "x", "occurrences": [{"id": "m"}]}}}}),
        json.dumps({"P": "not a project"}),
    ],
)
def test_invalid_snapshots_raise_parse_error(text: str) -> None:
    with pytest.raises(SnapshotParseError):
        parse_snapshot(text)


def test_slugify() -> None:
    assert slugify("My  Research Project") == "my-research-project"


def test_export_snapshot_writes_pretty_json(tmp_path: Path, cat_state: AppState) -> None:
    state = AppState(projects={"My Study": cat_state.project(PROJECT)})

    path = export_snapshot(state, "My Study", tmp_path)

    assert path == tmp_path / "my-study.json"
    text = path.read_text(encoding="utf-8")
    assert text.startswith('{\n  "My Study"')
    assert parse_snapshot(text) == state
