"""Cross-tabulation of mark co-occurrence across every file of a project."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from qda_workbench.core.search.indexer import expand_span, index
from qda_workbench.models.project import (
    CellOccurrence,
    Expansion,
    MarkType,
    PermanentRef,
    Project,
    TextFile,
)

TOTAL = "Total"
CSV_HEADER_CORNER = "Intersection"
CSV_FILE_NAME = "tabulation.csv"

_GROUP_PREFIX = "Group"


@dataclass
class Cell:
    """Intersection count and the row occurrences behind it."""

    count: int = 0
    occurrences: list[CellOccurrence] = field(default_factory=list)

    def add(self, matched: list[CellOccurrence]) -> None:
        self.count += len(matched)
        self.occurrences.extend(matched)


@dataclass
class Matrix:
    """Tabulation result. ``cells`` holds selector pairs only, totals live beside it."""

    rows: list[str]
    cols: list[str]
    expansion: Expansion
    cells: dict[str, dict[str, Cell]]
    row_totals: dict[str, Cell]
    col_totals: dict[str, Cell]
    grand: Cell

    def cell(self, row: str, col: str) -> Cell:
        return self.cells[row][col]

    @property
    def grand_total(self) -> int:
        return self.grand.count


def _split_selector(selector: str) -> tuple[str | None, str]:
    kind, sep, name = selector.partition(":")
    if sep and kind in (MarkType.TAG.value, MarkType.SEARCH.value, _GROUP_PREFIX) and name:
        return kind, name
    return None, selector


def _tag_occurrences(
    ids: set[str], file_name: str, text_file: TextFile, expansion: Expansion
) -> list[CellOccurrence]:
    refs = {PermanentRef(i) for i in ids}
    result: list[CellOccurrence] = []
    for occ in text_file.occurrences:
        if occ.ref not in refs:
            continue
        span = expand_span(text_file.content, occ.start, occ.end, expansion)
        text = occ.text if expansion == Expansion.NONE else text_file.content[span.start : span.end]
        result.append(CellOccurrence(file=file_name, start=span.start, end=span.end, text=text))
    return result


def _search_occurrences(
    term: str, file_name: str, text_file: TextFile, expansion: Expansion
) -> list[CellOccurrence]:
    content = text_file.content
    return [
        CellOccurrence(file=file_name, start=s.start, end=s.end, text=content[s.start : s.end])
        for s in index(term, content, expansion)
    ]


def selector_occurrences(
    project: Project,
    selector: str,
    file_name: str,
    expansion: Expansion = Expansion.NONE,
) -> list[CellOccurrence]:
    """Occurrences of a row/column selector in one file, derived fresh.

    Selectors are ``Tag:<name>``, ``Search:<name>``, ``Group:<name>`` or a
    bare name. A bare name means the Tag of that name if one exists, else
    the Group of that name, else a search term indexed live.
    """
    text_file = project.files[file_name]
    kind, name = _split_selector(selector)

    if kind in (None, MarkType.TAG.value):
        tag = project.find_mark(name, MarkType.TAG)
        if tag is not None:
            return _tag_occurrences({tag.id}, file_name, text_file, expansion)
        if kind == MarkType.TAG.value:
            return []

    if kind in (None, _GROUP_PREFIX):
        found = project.find_group(name)
        if found is not None:
            _group_id, group = found
            result: list[CellOccurrence] = []
            for mark_id in group.marks:
                mark = project.marks.get(mark_id)
                if mark is None:
                    continue
                if mark.type == MarkType.SEARCH:
                    result += _search_occurrences(mark.name, file_name, text_file, expansion)
                else:
                    result += _tag_occurrences({mark.id}, file_name, text_file, expansion)
            return result
        if kind == _GROUP_PREFIX:
            return []

    return _search_occurrences(name, file_name, text_file, expansion)


def _overlaps(a: CellOccurrence, b: CellOccurrence, expansion: Expansion) -> bool:
    if a.file != b.file:
        return False
    if expansion == Expansion.NONE:
        return max(a.start, b.start) < min(a.end, b.end)
    return a.start == b.start and a.end == b.end


def tabulate(
    project: Project,
    rows: list[str],
    cols: list[str],
    expansion: Expansion = Expansion.NONE,
) -> Matrix | None:
    """Count, per (row, col), the row occurrences that intersect a column occurrence.

    Occurrence lists are re-derived for every file and pair. Row, column and
    grand totals are accumulated in the same pass as the cells.

    Args:
        project: Project whose files are tabulated.
        rows: Row selectors.
        cols: Column selectors.
        expansion: NONE compares by interval overlap; SENTENCE and PARAGRAPH
            compare expanded spans for equality.

    Returns:
        The matrix, or None when rows or cols is empty.
    """
    if not rows or not cols:
        return None
    rows = list(dict.fromkeys(rows))
    cols = list(dict.fromkeys(cols))

    cells: dict[str, dict[str, Cell]] = {row: {col: Cell() for col in cols} for row in rows}
    row_totals = {row: Cell() for row in rows}
    col_totals = {col: Cell() for col in cols}
    grand = Cell()

    for file_name in project.files:
        for row in rows:
            row_occs = selector_occurrences(project, row, file_name, expansion)
            for col in cols:
                col_occs = selector_occurrences(project, col, file_name, expansion)
                matched = [r for r in row_occs if any(_overlaps(r, c, expansion) for c in col_occs)]
                cells[row][col].add(matched)
                row_totals[row].add(matched)
                col_totals[col].add(matched)
                grand.add(matched)

    logger.debug(
        "Tabulated {}x{} over {} files, grand total {}",
        len(rows), len(cols), len(project.files), grand.count,
    )
    return Matrix(
        rows=rows,
        cols=cols,
        expansion=expansion,
        cells=cells,
        row_totals=row_totals,
        col_totals=col_totals,
        grand=grand,
    )


def to_csv_rows(matrix: Matrix) -> list[list[str]]:
    header = [CSV_HEADER_CORNER, *matrix.cols, TOTAL]
    body = [
        [
            row,
            *(str(matrix.cell(row, col).count) for col in matrix.cols),
            str(matrix.row_totals[row].count),
        ]
        for row in matrix.rows
    ]
    footer = [
        TOTAL,
        *(str(matrix.col_totals[col].count) for col in matrix.cols),
        str(matrix.grand_total),
    ]
    return [header, *body, footer]


def to_csv(matrix: Matrix) -> str:
    """Linearize a matrix as plain comma-joined lines.

    Names containing commas are not quoted.
    """
    return "\n".join(",".join(row) for row in to_csv_rows(matrix))


def write_csv(matrix: Matrix, out_dir: Path) -> Path:
    path = out_dir / CSV_FILE_NAME
    path.write_text(to_csv(matrix) + "\n", encoding="utf-8")
    logger.info("Wrote tabulation to {}", path)
    return path


def matrix_counts(matrix: Matrix) -> dict[str, Any]:
    """Plain counts of a matrix, with totals under their own keys."""
    return {
        "rows": matrix.rows,
        "cols": matrix.cols,
        "counts": {
            row: {col: matrix.cell(row, col).count for col in matrix.cols} for row in matrix.rows
        },
        "row_totals": {row: cell.count for row, cell in matrix.row_totals.items()},
        "col_totals": {col: cell.count for col, cell in matrix.col_totals.items()},
        "grand_total": matrix.grand_total,
    }
