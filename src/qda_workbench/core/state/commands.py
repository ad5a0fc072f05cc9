"""Mark and occurrence commands.

Every command is a pure function from an ``AppState`` to a new ``AppState``.
Nothing is mutated in place; callers persist the returned state. Commands
that touch occurrences finish with a dedup pass so that no file ever holds
two occurrences with the same (mark, start, end).
"""

from collections.abc import Callable, Iterable

from loguru import logger

from qda_workbench.config import DEFAULT_EXPANSION
from qda_workbench.core.search.indexer import index
from qda_workbench.core.state.factory import generate_pastel_color, new_id
from qda_workbench.errors import ValidationError
from qda_workbench.models.project import (
    AppState,
    Expansion,
    Group,
    Mark,
    MarkType,
    Occurrence,
    PendingRef,
    PermanentRef,
    Project,
    Span,
    TextFile,
    term_key,
)


def dedupe_occurrences(occurrences: Iterable[Occurrence]) -> tuple[Occurrence, ...]:
    """Drop repeated (mark, start, end) triples, keeping the first in insertion order."""
    seen: set[tuple[object, int, int]] = set()
    result: list[Occurrence] = []
    for occ in occurrences:
        if occ.key in seen:
            continue
        seen.add(occ.key)
        result.append(occ)
    return tuple(result)


def get_file(project: Project, file_name: str) -> TextFile:
    try:
        return project.files[file_name]
    except KeyError:
        msg = f"File {file_name!r} not found"
        raise ValidationError(msg) from None


def with_occurrences(text_file: TextFile, occurrences: Iterable[Occurrence]) -> TextFile:
    return TextFile(
        content=text_file.content,
        occurrences=dedupe_occurrences(occurrences),
        dirty=text_file.dirty,
    )


def map_files(project: Project, fn: Callable[[TextFile], TextFile]) -> dict[str, TextFile]:
    return {name: fn(text_file) for name, text_file in project.files.items()}


def scan_occurrences(
    ref: PermanentRef | PendingRef,
    term: str,
    content: str,
    expansion: Expansion,
) -> list[Occurrence]:
    """Index a term and wrap every hit as an occurrence of ``ref``."""
    return [
        Occurrence(ref=ref, start=span.start, end=span.end, text=content[span.start : span.end])
        for span in index(term, content, expansion)
    ]


def _ensure_mark(
    project: Project, name: str, mark_type: MarkType, color: str | None
) -> tuple[Project, Mark]:
    existing = project.find_mark(name, mark_type)
    if existing is not None:
        return project, existing
    mark = Mark(
        id=new_id(mark_type.value.lower(), name),
        type=mark_type,
        name=name,
        color=color or generate_pastel_color(),
    )
    logger.debug("Created {} mark {!r} ({})", mark_type.value, name, mark.id)
    return Project(
        files=project.files, marks={**project.marks, mark.id: mark}, groups=project.groups
    ), mark


def add_tag(
    state: AppState,
    project_name: str,
    file_name: str,
    span: Span | None,
    label: str,
    *,
    color: str | None = None,
) -> AppState:
    """Tag a span of a file, creating the Tag mark on first use.

    Silently returns the state unchanged when there is no usable span or
    the label is blank.
    """
    label = label.strip()
    if span is None or span.is_empty or not label:
        return state

    project = state.project(project_name)
    text_file = get_file(project, file_name)
    if span.start < 0 or span.end > len(text_file.content):
        return state

    project, mark = _ensure_mark(project, label, MarkType.TAG, color)
    occ = Occurrence(
        ref=PermanentRef(mark.id),
        start=span.start,
        end=span.end,
        text=text_file.content[span.start : span.end],
    )
    files = {**project.files, file_name: with_occurrences(text_file, (*text_file.occurrences, occ))}
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )


def clear_search_term(state: AppState, project_name: str, file_name: str) -> AppState:
    """Drop every pending (unsaved search) occurrence of a file."""
    project = state.project(project_name)
    text_file = get_file(project, file_name)
    kept = [o for o in text_file.occurrences if not o.is_pending]
    if len(kept) == len(text_file.occurrences):
        return state
    files = {**project.files, file_name: with_occurrences(text_file, kept)}
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )


def set_search_term(
    state: AppState,
    project_name: str,
    file_name: str,
    term: str,
    *,
    expansion: Expansion = Expansion.NONE,
) -> AppState:
    """Run a live, unsaved search over one file.

    Previous pending occurrences of the file are replaced. When a Search of
    that name is already saved its stored occurrences are used instead and
    nothing pending is added.
    """
    state = clear_search_term(state, project_name, file_name)
    term = term.strip()
    if not term:
        return state

    project = state.project(project_name)
    if project.find_mark(term, MarkType.SEARCH) is not None:
        return state

    text_file = project.files[file_name]
    hits = scan_occurrences(PendingRef(term_key(term)), term, text_file.content, expansion)
    if not hits:
        return state
    files = {
        **project.files,
        file_name: with_occurrences(text_file, (*text_file.occurrences, *hits)),
    }
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )


def save_search(
    state: AppState,
    project_name: str,
    term: str,
    *,
    expansion: Expansion = DEFAULT_EXPANSION,
    color: str | None = None,
) -> AppState:
    """Save a search as a Search mark and index it across every file.

    Saving a name that is already saved is a no-op. Pending occurrences of
    the term are replaced by permanent ones in every file.
    """
    term = term.strip()
    if not term:
        msg = "Search term cannot be empty"
        raise ValidationError(msg)

    project = state.project(project_name)
    if project.find_mark(term, MarkType.SEARCH) is not None:
        logger.debug("Search {!r} already saved", term)
        return state

    project, mark = _ensure_mark(project, term, MarkType.SEARCH, color)
    pending = PendingRef(term_key(term))
    ref = PermanentRef(mark.id)

    def rescan(text_file: TextFile) -> TextFile:
        kept = [o for o in text_file.occurrences if o.ref != pending]
        return with_occurrences(
            text_file, kept + scan_occurrences(ref, term, text_file.content, expansion)
        )

    files = map_files(project, rescan)
    logger.info(
        "Saved search {!r}: {} occurrences in {} files",
        term,
        sum(1 for f in files.values() for o in f.occurrences if o.ref == ref),
        len(files),
    )
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )


def remove_mark(state: AppState, project_name: str, mark_id: str) -> AppState:
    """Delete a mark with all its occurrences and group memberships.

    The whole cascade happens in the one returned state.
    """
    project = state.project(project_name)
    if mark_id not in project.marks:
        return state

    marks = {k: v for k, v in project.marks.items() if k != mark_id}
    ref = PermanentRef(mark_id)
    files = map_files(
        project,
        lambda f: with_occurrences(f, (o for o in f.occurrences if o.ref != ref)),
    )
    groups = {
        gid: Group(name=g.name, marks=tuple(m for m in g.marks if m != mark_id), color=g.color)
        for gid, g in project.groups.items()
    }
    logger.debug("Removed mark {}", mark_id)
    return state.with_project(project_name, Project(files=files, marks=marks, groups=groups))


def remove_search_by_name(state: AppState, project_name: str, name: str) -> AppState:
    """Remove a saved Search given its exact display name."""
    project = state.project(project_name)
    for mark in project.marks_of_type(MarkType.SEARCH):
        if mark.name == name:
            return remove_mark(state, project_name, mark.id)
    return state


def remove_occurrence(
    state: AppState,
    project_name: str,
    file_name: str,
    mark_id: str,
    span: Span,
) -> AppState:
    """Delete the occurrence(s) of a mark at exactly ``span`` in one file.

    The mark definition stays even when this was its last occurrence.
    """
    project = state.project(project_name)
    text_file = get_file(project, file_name)
    target = (PermanentRef(mark_id), span.start, span.end)
    kept = [o for o in text_file.occurrences if o.key != target]
    files = {**project.files, file_name: with_occurrences(text_file, kept)}
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )


def refresh_all_searches(
    state: AppState,
    project_name: str,
    *,
    expansion: Expansion = DEFAULT_EXPANSION,
) -> AppState:
    """Re-index every saved Search against the current content of every file.

    This reconciles Search occurrences with edited content; Tag occurrences
    are left as they are.
    """
    project = state.project(project_name)
    searches = project.marks_of_type(MarkType.SEARCH)
    search_ids = {m.id for m in searches}

    def rescan(text_file: TextFile) -> TextFile:
        kept = [o for o in text_file.occurrences if o.mark_id not in search_ids]
        for mark in searches:
            kept += scan_occurrences(PermanentRef(mark.id), mark.name, text_file.content, expansion)
        return with_occurrences(text_file, kept)

    files = map_files(project, rescan)
    logger.info("Refreshed {} searches across {} files", len(searches), len(files))
    return state.with_project(
        project_name, Project(files=files, marks=project.marks, groups=project.groups)
    )


def rename_mark(state: AppState, project_name: str, mark_id: str, new_name: str) -> AppState:
    """Rename a mark, rejecting names already used by a mark of the same type."""
    new_name = new_name.strip()
    if not new_name:
        msg = "Mark name cannot be empty"
        raise ValidationError(msg)

    project = state.project(project_name)
    mark = project.marks.get(mark_id)
    if mark is None:
        msg = f"Mark {mark_id!r} not found"
        raise ValidationError(msg)
    clash = project.find_mark(new_name, mark.type)
    if clash is not None and clash.id != mark_id:
        msg = f"A {mark.type.value} named {clash.name!r} already exists"
        raise ValidationError(msg)

    renamed = Mark(id=mark.id, type=mark.type, name=new_name, color=mark.color)
    return state.with_project(
        project_name,
        Project(
            files=project.files,
            marks={**project.marks, mark_id: renamed},
            groups=project.groups,
        ),
    )


def apply_synonyms(
    state: AppState,
    project_name: str,
    synonyms: Iterable[str],
    *,
    expansion: Expansion = DEFAULT_EXPANSION,
) -> AppState:
    """Save each accepted synonym as a Search indexed across the whole project."""
    for word in synonyms:
        if word.strip():
            state = save_search(state, project_name, word, expansion=expansion)
    return state
