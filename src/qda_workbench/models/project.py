"""Domain models for the QDA workbench."""

import re
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum

from qda_workbench.errors import ValidationError


class Expansion(IntEnum):
    """How far a raw match span grows before it is stored or compared."""

    NONE = 0
    SENTENCE = 1
    PARAGRAPH = 2


class MarkType(StrEnum):
    TAG = "Tag"
    SEARCH = "Search"


@dataclass(frozen=True)
class Span:
    """A half-open character interval [start, end) into a file's content."""

    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start


@dataclass(frozen=True)
class PermanentRef:
    """Reference to a saved mark."""

    id: str


@dataclass(frozen=True)
class PendingRef:
    """Reference to an in-progress search that has not been saved yet.

    Occurrences carrying this reference are never persisted.
    """

    term_key: str


MarkRef = PermanentRef | PendingRef


def term_key(term: str) -> str:
    """Normalise a search term into the key used by pending occurrences."""
    return re.sub(r"\s+", "-", term).lower()


@dataclass(frozen=True)
class Mark:
    """A named, colored Tag or Search definition."""

    id: str
    type: MarkType
    name: str
    color: str


@dataclass(frozen=True)
class Occurrence:
    """One concrete span of one file, bound to a mark."""

    ref: MarkRef
    start: int
    end: int
    text: str

    @property
    def key(self) -> tuple[MarkRef, int, int]:
        return (self.ref, self.start, self.end)

    @property
    def mark_id(self) -> str | None:
        return self.ref.id if isinstance(self.ref, PermanentRef) else None

    @property
    def is_pending(self) -> bool:
        return isinstance(self.ref, PendingRef)


@dataclass(frozen=True)
class TextFile:
    """Raw content of a file plus the occurrences local to it."""

    content: str
    occurrences: tuple[Occurrence, ...] = ()
    dirty: bool | None = False


@dataclass(frozen=True)
class Group:
    """A named, ordered set of mark ids."""

    name: str
    marks: tuple[str, ...] = ()
    color: str = ""


@dataclass(frozen=True)
class Project:
    """Files, marks and groups of one named project."""

    files: dict[str, TextFile] = field(default_factory=dict)
    marks: dict[str, Mark] = field(default_factory=dict)
    groups: dict[str, Group] = field(default_factory=dict)

    def find_mark(self, name: str, mark_type: MarkType) -> Mark | None:
        """Find a mark of the given type by case-insensitive name."""
        lowered = name.lower()
        for mark in self.marks.values():
            if mark.type == mark_type and mark.name.lower() == lowered:
                return mark
        return None

    def marks_of_type(self, mark_type: MarkType) -> list[Mark]:
        return [m for m in self.marks.values() if m.type == mark_type]

    def find_group(self, name: str) -> tuple[str, Group] | None:
        lowered = name.lower()
        for group_id, group in self.groups.items():
            if group.name.lower() == lowered:
                return group_id, group
        return None


@dataclass(frozen=True)
class AppState:
    """All projects, keyed by their display name."""

    projects: dict[str, Project] = field(default_factory=dict)

    def project(self, name: str) -> Project:
        try:
            return self.projects[name]
        except KeyError:
            msg = f"Project {name!r} not found"
            raise ValidationError(msg) from None

    def with_project(self, name: str, project: Project) -> "AppState":
        return AppState(projects={**self.projects, name: project})

    @property
    def first_project_name(self) -> str | None:
        return next(iter(self.projects), None)


@dataclass(frozen=True)
class Segment:
    """A maximal run of text covered by one constant set of occurrences."""

    start: int
    end: int
    text: str
    covering: tuple[Occurrence, ...] = ()


@dataclass(frozen=True)
class CellOccurrence:
    """An occurrence contributing to a tabulation cell, with its file."""

    file: str
    start: int
    end: int
    text: str
