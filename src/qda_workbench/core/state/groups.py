"""Group registry: named sets of mark ids."""

from collections.abc import Iterable

from loguru import logger

from qda_workbench.core.state.commands import map_files, with_occurrences
from qda_workbench.core.state.factory import generate_pastel_color, new_id
from qda_workbench.errors import ValidationError
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


def _get_group(project: Project, group_id: str) -> Group:
    try:
        return project.groups[group_id]
    except KeyError:
        msg = f"Group {group_id!r} not found"
        raise ValidationError(msg) from None


def _with_group(state: AppState, project_name: str, group_id: str, group: Group) -> AppState:
    project = state.project(project_name)
    return state.with_project(
        project_name,
        Project(
            files=project.files,
            marks=project.marks,
            groups={**project.groups, group_id: group},
        ),
    )


def create_group(
    state: AppState, project_name: str, name: str, *, color: str | None = None
) -> tuple[AppState, str]:
    """Create an empty group.

    Returns:
        Tuple of (new state, id of the new group).
    """
    name = name.strip()
    if not name:
        msg = "Group name cannot be empty"
        raise ValidationError(msg)
    state.project(project_name)
    group_id = new_id("group", name)
    group = Group(name=name, marks=(), color=color or generate_pastel_color())
    return _with_group(state, project_name, group_id, group), group_id


def add_mark_to_group(state: AppState, project_name: str, group_id: str, mark_id: str) -> AppState:
    project = state.project(project_name)
    group = _get_group(project, group_id)
    if mark_id not in project.marks or mark_id in group.marks:
        return state
    return _with_group(
        state, project_name, group_id, Group(group.name, (*group.marks, mark_id), group.color)
    )


def remove_mark_from_group(
    state: AppState, project_name: str, group_id: str, mark_id: str
) -> AppState:
    project = state.project(project_name)
    group = _get_group(project, group_id)
    marks = tuple(m for m in group.marks if m != mark_id)
    return _with_group(state, project_name, group_id, Group(group.name, marks, group.color))


def update_group_marks(
    state: AppState, project_name: str, group_id: str, mark_ids: Iterable[str]
) -> AppState:
    """Replace a group's membership wholesale.

    Order is kept; repeated ids and ids of unknown marks are dropped.
    """
    project = state.project(project_name)
    group = _get_group(project, group_id)
    members = tuple(dict.fromkeys(m for m in mark_ids if m in project.marks))
    return _with_group(state, project_name, group_id, Group(group.name, members, group.color))


def delete_group(state: AppState, project_name: str, group_id: str) -> AppState:
    project = state.project(project_name)
    groups = {k: v for k, v in project.groups.items() if k != group_id}
    return state.with_project(
        project_name, Project(files=project.files, marks=project.marks, groups=groups)
    )


def marks_in_group(project: Project, group_id: str) -> list[Mark]:
    """Return the existing marks of a group, in membership order."""
    group = project.groups.get(group_id)
    if group is None:
        return []
    return [project.marks[m] for m in group.marks if m in project.marks]


def save_group_as_tag(
    state: AppState,
    project_name: str,
    group_id: str,
    tag_name: str,
    *,
    color: str | None = None,
) -> tuple[AppState, str]:
    """Flatten a group into a brand-new Tag.

    Every occurrence of every member mark, in every file, is copied to the
    new Tag. The copies are independent of the member marks.

    Returns:
        Tuple of (new state, id of the new Tag mark).
    """
    tag_name = tag_name.strip()
    if not tag_name:
        msg = "Tag name cannot be empty"
        raise ValidationError(msg)

    project = state.project(project_name)
    group = _get_group(project, group_id)
    if project.find_mark(tag_name, MarkType.TAG) is not None:
        msg = f"A Tag named {tag_name!r} already exists"
        raise ValidationError(msg)

    mark = Mark(
        id=new_id("tag", tag_name),
        type=MarkType.TAG,
        name=tag_name,
        color=color or group.color or generate_pastel_color(),
    )
    members = {PermanentRef(m) for m in group.marks}
    ref = PermanentRef(mark.id)

    def copy_members(text_file: TextFile) -> TextFile:
        copies = [
            Occurrence(ref=ref, start=o.start, end=o.end, text=o.text)
            for o in text_file.occurrences
            if o.ref in members
        ]
        return with_occurrences(text_file, (*text_file.occurrences, *copies))

    files = map_files(project, copy_members)
    logger.info("Saved group {!r} as tag {!r}", group.name, tag_name)
    new_project = Project(
        files=files, marks={**project.marks, mark.id: mark}, groups=project.groups
    )
    return state.with_project(project_name, new_project), mark.id
