"""Per-file summaries of tags and searches, and the tabulation option list."""

from dataclasses import dataclass

from qda_workbench.config import PENDING_SEARCH_COLOR
from qda_workbench.models.project import MarkType, PermanentRef, Project, Span


@dataclass(frozen=True)
class MarkSummary:
    """All occurrences of one mark name within a file."""

    name: str
    mark_id: str | None
    color: str
    spans: tuple[Span, ...]
    texts: tuple[str, ...]

    @property
    def count(self) -> int:
        return len(self.spans)


@dataclass(frozen=True)
class TabulationOption:
    id: str
    name: str
    prefix: str
    color: str

    @property
    def selector(self) -> str:
        return f"{self.prefix}:{self.name}"


def _summarize(
    project: Project, file_name: str, mark_type: MarkType, search_term: str
) -> list[MarkSummary]:
    text_file = project.files.get(file_name)
    if text_file is None:
        return []

    by_name: dict[str, tuple[str | None, str, list[Span], list[str]]] = {}
    for occ in text_file.occurrences:
        if isinstance(occ.ref, PermanentRef):
            mark = project.marks.get(occ.ref.id)
            if mark is None or mark.type != mark_type:
                continue
            name, mark_id, color = mark.name, mark.id, mark.color
        elif mark_type == MarkType.SEARCH:
            name, mark_id, color = search_term, None, PENDING_SEARCH_COLOR
        else:
            continue
        entry = by_name.setdefault(name, (mark_id, color, [], []))
        entry[2].append(Span(occ.start, occ.end))
        entry[3].append(occ.text)

    return [
        MarkSummary(name=name, mark_id=mid, color=color, spans=tuple(spans), texts=tuple(texts))
        for name, (mid, color, spans, texts) in by_name.items()
    ]


def summarize_tags(project: Project, file_name: str) -> list[MarkSummary]:
    return _summarize(project, file_name, MarkType.TAG, "")


def summarize_searches(
    project: Project, file_name: str, search_term: str = ""
) -> list[MarkSummary]:
    """Summarize saved searches plus the live (unsaved) search of a file."""
    return _summarize(project, file_name, MarkType.SEARCH, search_term)


def marks_for_tabulation(project: Project) -> list[TabulationOption]:
    """List tags, then searches, then groups as tabulation row/column options."""
    options = [
        TabulationOption(id=m.id, name=m.name, prefix=m.type.value, color=m.color)
        for mark_type in (MarkType.TAG, MarkType.SEARCH)
        for m in project.marks_of_type(mark_type)
    ]
    options += [
        TabulationOption(id=gid, name=g.name, prefix="Group", color=g.color)
        for gid, g in project.groups.items()
    ]
    return options
