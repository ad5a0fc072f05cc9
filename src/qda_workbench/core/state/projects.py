"""Project and file commands."""

from loguru import logger

from qda_workbench.config import (
    DEFAULT_PROJECT_NAME,
    DEFAULT_SAMPLE_CONTENT,
    NEW_PROJECT_SAMPLE_CONTENT,
    SAMPLE_FILE_NAME,
)
from qda_workbench.core.importer.filenames import add_txt_extension, validate_file_name
from qda_workbench.core.state.commands import get_file
from qda_workbench.errors import ValidationError
from qda_workbench.models.project import AppState, Project, TextFile


def default_state() -> AppState:
    """The state a brand-new workbench starts from."""
    return AppState(
        projects={
            DEFAULT_PROJECT_NAME: Project(
                files={SAMPLE_FILE_NAME: TextFile(content=DEFAULT_SAMPLE_CONTENT, dirty=None)}
            )
        }
    )


def create_project(state: AppState, name: str) -> AppState:
    """Add a project holding a single sample file.

    Project names are the project identity, so an existing name is rejected
    rather than overwritten.
    """
    name = name.strip()
    if not name:
        msg = "Project name cannot be empty"
        raise ValidationError(msg)
    if name in state.projects:
        msg = f"Project {name!r} already exists"
        raise ValidationError(msg)
    project = Project(
        files={SAMPLE_FILE_NAME: TextFile(content=NEW_PROJECT_SAMPLE_CONTENT, dirty=None)}
    )
    logger.debug("Created project {!r}", name)
    return state.with_project(name, project)


def rename_project(state: AppState, old_name: str, new_name: str) -> AppState:
    """Move a project to a new key, keeping its position in the mapping."""
    new_name = new_name.strip()
    project = state.project(old_name)
    if not new_name:
        msg = "Project name cannot be empty"
        raise ValidationError(msg)
    if new_name == old_name:
        return state
    if new_name in state.projects:
        msg = f"Project {new_name!r} already exists"
        raise ValidationError(msg)
    projects = {
        (new_name if key == old_name else key): (project if key == old_name else value)
        for key, value in state.projects.items()
    }
    return AppState(projects=projects)


def delete_project(state: AppState, name: str) -> AppState:
    state.project(name)
    return AppState(projects={k: v for k, v in state.projects.items() if k != name})


def add_file(state: AppState, project_name: str, file_name: str, content: str) -> AppState:
    """Add a text file with no occurrences.

    The name is validated and given a ``.txt`` extension when it has none;
    a name already used in the project is rejected.
    """
    project = state.project(project_name)
    file_name = add_txt_extension(file_name)
    validate_file_name(file_name)
    if file_name in project.files:
        msg = "File already exist with same name."
        raise ValidationError(msg)

    files = {**project.files, file_name: TextFile(content=content, dirty=False)}
    logger.debug("Added file {!r} ({} chars) to {!r}", file_name, len(content), project_name)
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )


def remove_file(state: AppState, project_name: str, file_name: str) -> AppState:
    """Remove a file; its occurrences vanish with it."""
    project = state.project(project_name)
    get_file(project, file_name)
    files = {k: v for k, v in project.files.items() if k != file_name}
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )


def edit_content(state: AppState, project_name: str, file_name: str, content: str) -> AppState:
    """Replace a file's content and mark it dirty.

    Stored occurrence offsets are not adjusted; ``refresh_all_searches``
    re-derives Search occurrences, Tag offsets may go stale.
    """
    project = state.project(project_name)
    text_file = get_file(project, file_name)
    edited = TextFile(content=content, occurrences=text_file.occurrences, dirty=True)
    files = {**project.files, file_name: edited}
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )
