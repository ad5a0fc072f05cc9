"""Serialize and parse the persisted project snapshot.

The snapshot is a single JSON document::

    {projectName: {"files": {fileName: {"content", "occurrences": [{id, start, end, text}],
                                        "dirty"?}},
                   "marks": {id: {"color", "type", "name"}},
                   "groups": {id: {"name", "marks", "color"}}}}

Occurrences of unsaved searches are never written.
"""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger

from qda_workbench.core.state.factory import generate_pastel_color
from qda_workbench.errors import SnapshotParseError
from qda_workbench.models.project import (
    AppState,
    Group,
    Mark,
    MarkType,
    Occurrence,
    PermanentRef,
    Project,
    TextFile,
)


def _dump_file(text_file: TextFile) -> dict[str, Any]:
    data: dict[str, Any] = {
        "content": text_file.content,
        "occurrences": [
            {"id": o.ref.id, "start": o.start, "end": o.end, "text": o.text}
            for o in text_file.occurrences
            if isinstance(o.ref, PermanentRef)
        ],
    }
    if text_file.dirty is not None:
        data["dirty"] = text_file.dirty
    return data


def dump_state(state: AppState) -> dict[str, Any]:
    """Convert state to plain JSON-compatible data."""
    return {
        name: {
            "files": {fname: _dump_file(f) for fname, f in project.files.items()},
            "marks": {
                mid: {"color": m.color, "type": m.type.value, "name": m.name}
                for mid, m in project.marks.items()
            },
            "groups": {
                gid: {"name": g.name, "marks": list(g.marks), "color": g.color}
                for gid, g in project.groups.items()
            },
        }
        for name, project in state.projects.items()
    }


def dump_snapshot(state: AppState, *, indent: int | None = None) -> str:
    return json.dumps(dump_state(state), indent=indent, ensure_ascii=False)


def _parse_file(data: dict[str, Any]) -> TextFile:
    occurrences = tuple(
        Occurrence(
            ref=PermanentRef(str(o["id"])),
            start=int(o["start"]),
            end=int(o["end"]),
            text=o.get("text", ""),
        )
        for o in data.get("occurrences") or []
    )
    dirty = data.get("dirty")
    return TextFile(
        content=data.get("content") or "",
        occurrences=occurrences,
        dirty=None if dirty is None else bool(dirty),
    )


def _parse_project(data: dict[str, Any]) -> Project:
    files = {name: _parse_file(f) for name, f in (data.get("files") or {}).items()}
    marks = {
        mid: Mark(id=mid, type=MarkType(m["type"]), name=m["name"], color=m.get("color", ""))
        for mid, m in (data.get("marks") or {}).items()
    }
    groups = {
        gid: Group(
            name=g["name"],
            marks=tuple(g.get("marks") or ()),
            color=g.get("color") or generate_pastel_color(),
        )
        for gid, g in (data.get("groups") or {}).items()
    }
    return Project(files=files, marks=marks, groups=groups)


def _is_legacy(data: dict[str, Any]) -> bool:
    return "projectName" in data and "files" in data and "tags" in data


def _convert_legacy(data: dict[str, Any]) -> AppState:
    """Convert a pre-project snapshot ``{projectName, files, tags}``."""
    files: dict[str, TextFile] = {
        name: TextFile(content=f.get("content") or "", dirty=bool(f.get("dirty")))
        for name, f in (data.get("files") or {}).items()
        if f
    }
    occurrences: dict[str, list[Occurrence]] = {name: [] for name in files}
    marks: dict[str, Mark] = {}
    for tag_id, tag in (data.get("tags") or {}).items():
        if not tag:
            continue
        marks[tag_id] = Mark(
            id=tag_id,
            type=MarkType(tag.get("type") or MarkType.TAG.value),
            name=tag.get("text") or "Unnamed Tag",
            color=tag.get("color") or generate_pastel_color(),
        )
        for occ in tag.get("occurrences") or []:
            file_id = occ.get("fileId") if occ else None
            if file_id in occurrences:
                occurrences[file_id].append(
                    Occurrence(
                        ref=PermanentRef(tag_id),
                        start=occ.get("start") or 0,
                        end=occ.get("end") or 0,
                        text=occ.get("text") or "",
                    )
                )
    converted = {
        name: TextFile(content=f.content, occurrences=tuple(occurrences[name]), dirty=f.dirty)
        for name, f in files.items()
    }
    logger.info("Converted legacy snapshot with {} tags", len(marks))
    return AppState(projects={data["projectName"]: Project(files=converted, marks=marks)})


def parse_state(data: Any) -> AppState:
    """Build state from decoded JSON, raising SnapshotParseError on bad structure."""
    if not isinstance(data, dict):
        msg = f"Snapshot must be a JSON object, got {type(data).__name__}"
        raise SnapshotParseError(msg)
    try:
        if _is_legacy(data):
            return _convert_legacy(data)
        return AppState(projects={name: _parse_project(p) for name, p in data.items()})
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        msg = f"Invalid snapshot structure: {e}"
        raise SnapshotParseError(msg) from e


def parse_snapshot(text: str) -> AppState:
    """Parse a snapshot JSON document."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Invalid state file: {e}"
        raise SnapshotParseError(msg) from e
    return parse_state(data)


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name).lower()


def export_snapshot(state: AppState, project_name: str, out_dir: Path) -> Path:
    """Write the full snapshot, pretty-printed, to ``<slug of project>.json``."""
    path = out_dir / f"{slugify(project_name)}.json"
    path.write_text(dump_snapshot(state, indent=2), encoding="utf-8")
    logger.info("Exported snapshot to {}", path)
    return path
