"""Partition file content into highlight segments.

Overlapping occurrences are flattened into a list of minimal,
non-overlapping segments. Each segment carries every occurrence that fully
contains it; since boundaries are taken from occurrence edges, no occurrence
ever starts or ends inside a segment.
"""

import html
import io
from collections.abc import Iterable
from dataclasses import dataclass

from qda_workbench.config import PENDING_SEARCH_COLOR
from qda_workbench.models.project import (
    MarkType,
    Occurrence,
    PermanentRef,
    Project,
    Segment,
)

FULL_OPACITY = 1.0
DIMMED_OPACITY = 0.5


@dataclass(frozen=True)
class CoveringMark:
    """Display information for one occurrence covering a segment."""

    mark_id: str | None
    type: MarkType
    name: str
    color: str


@dataclass(frozen=True)
class HighlightStyle:
    background: str
    opacity: float
    title: str


@dataclass(frozen=True)
class RenderedSegment:
    """A segment plus the marks and style it is displayed with."""

    segment: Segment
    marks: tuple[CoveringMark, ...]
    style: HighlightStyle | None


def segment(content: str, occurrences: Iterable[Occurrence]) -> list[Segment]:
    """Split content at every occurrence boundary.

    Returns contiguous segments covering [0, len(content)) whose texts
    concatenate back to ``content``. Occurrence offsets outside the content
    (stale after an edit) are clamped.
    """
    occs = list(occurrences)
    length = len(content)
    boundaries = {0, length}
    for occ in occs:
        boundaries.add(min(max(occ.start, 0), length))
        boundaries.add(min(max(occ.end, 0), length))
    ordered = sorted(boundaries)

    segments: list[Segment] = []
    for start, end in zip(ordered, ordered[1:]):
        if start == end:
            continue
        covering = tuple(o for o in occs if o.start <= start and o.end >= end)
        segments.append(Segment(start=start, end=end, text=content[start:end], covering=covering))
    return segments


def _gradient(colors: list[str]) -> str:
    n = len(colors)
    stops = ", ".join(
        f"{color} {i * 100 / n:g}%, {color} {(i + 1) * 100 / n:g}%"
        for i, color in enumerate(colors)
    )
    return f"linear-gradient(135deg, {stops})"


def highlight_style(
    marks: tuple[CoveringMark, ...],
    *,
    search_term: str = "",
    tag_filter: str = "all",
) -> HighlightStyle | None:
    """Compute how a segment covered by ``marks`` is painted.

    One mark paints its color, several marks paint an angular gradient.
    Opacity is full only when a covering mark matches the active filter.
    """
    if not marks:
        return None

    highlighted = any(
        (m.type == MarkType.SEARCH and m.name == search_term)
        or (m.type == MarkType.TAG and m.name == tag_filter)
        for m in marks
    )
    background = marks[0].color if len(marks) == 1 else _gradient([m.color for m in marks])
    return HighlightStyle(
        background=background,
        opacity=FULL_OPACITY if highlighted else DIMMED_OPACITY,
        title="\n".join(f"{m.type.value}: {m.name}" for m in marks),
    )


def _covering_mark(project: Project, occ: Occurrence, search_term: str) -> CoveringMark | None:
    if isinstance(occ.ref, PermanentRef):
        mark = project.marks.get(occ.ref.id)
        if mark is None:
            return None
        return CoveringMark(mark_id=mark.id, type=mark.type, name=mark.name, color=mark.color)
    return CoveringMark(
        mark_id=None, type=MarkType.SEARCH, name=search_term, color=PENDING_SEARCH_COLOR
    )


def render_file(
    project: Project,
    file_name: str,
    *,
    search_term: str = "",
    tag_filter: str = "all",
) -> list[RenderedSegment]:
    """Segment a file of a project and attach display styles.

    Occurrences that reference a mark no longer in the project are skipped.
    """
    text_file = project.files.get(file_name)
    if text_file is None:
        return []

    resolved: dict[Occurrence, CoveringMark] = {}
    for occ in text_file.occurrences:
        covering = _covering_mark(project, occ, search_term)
        if covering is not None:
            resolved[occ] = covering

    rendered: list[RenderedSegment] = []
    for seg in segment(text_file.content, resolved):
        marks = tuple(resolved[o] for o in seg.covering)
        rendered.append(
            RenderedSegment(
                segment=seg,
                marks=marks,
                style=highlight_style(marks, search_term=search_term, tag_filter=tag_filter),
            )
        )
    return rendered


def render_html(rendered: list[RenderedSegment]) -> str:
    """Render segments as inline HTML with ``<mark>`` elements for highlights."""
    out = io.StringIO()
    for item in rendered:
        text = html.escape(item.segment.text)
        if item.style is None:
            out.write(f"<span>{text}</span>")
            continue
        prop = "background-color" if len(item.marks) == 1 else "background"
        style = f"{prop}: {item.style.background}; opacity: {item.style.opacity:g}"
        out.write(
            f'<mark style="{html.escape(style)}" title="{html.escape(item.style.title)}">'
            f"{text}</mark>"
        )
    return out.getvalue()
