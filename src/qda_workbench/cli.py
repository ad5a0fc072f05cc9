"""CLI for the QDA workbench (projects, tagging, searches, tabulation, MCP server)."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from qda_workbench.config import DATABASE_FILENAME, SYNONYM_API_URL, resolve_data_directory
from qda_workbench.core.analysis.summary import (
    marks_for_tabulation,
    summarize_searches,
    summarize_tags,
)
from qda_workbench.core.render.segments import render_html
from qda_workbench.core.tabulate.engine import matrix_counts, to_csv, to_csv_rows, write_csv
from qda_workbench.errors import QdaError, ValidationError
from qda_workbench.logging_config import configure_logging
from qda_workbench.models.project import Expansion, Mark, MarkType, Project, Span
from qda_workbench.session import Workbench
from qda_workbench.store import SnapshotStore
from qda_workbench.synonyms import SynonymClient

app = typer.Typer(help="QDA workbench: tag, search and cross-tabulate text files.")
group_app = typer.Typer(help="Manage groups of marks.")
app.add_typer(group_app, name="group")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", "-d", help="Workbench database directory"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose, level="WARNING" if quiet else None)
    ctx.obj = data_dir or resolve_data_directory()


@contextmanager
def _workbench(ctx: typer.Context) -> Iterator[Workbench]:
    """Open the stored workbench; workbench errors exit with code 1."""
    store = SnapshotStore(Path(ctx.obj) / DATABASE_FILENAME)
    try:
        yield Workbench.open(store)
    except (QdaError, OSError) as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    finally:
        store.close()


def _parse_expansion(value: str) -> Expansion:
    try:
        return Expansion[value.upper()]
    except KeyError:
        msg = f"Expansion must be one of: {', '.join(e.name.lower() for e in Expansion)}"
        raise typer.BadParameter(msg) from None


def _resolve_mark(project: Project, mark: str, mark_type: MarkType | None = None) -> Mark:
    """Find a mark by id, else by name (Tags before Searches)."""
    if mark in project.marks:
        return project.marks[mark]
    for t in [mark_type] if mark_type else [MarkType.TAG, MarkType.SEARCH]:
        found = project.find_mark(mark, t)
        if found is not None:
            return found
    msg = f"Mark '{mark}' not found"
    raise ValidationError(msg)


def _resolve_group(project: Project, group: str) -> str:
    if group in project.groups:
        return group
    found = project.find_group(group)
    if found is None:
        msg = f"Group '{group}' not found"
        raise ValidationError(msg)
    return found[0]


# --- Projects ---


@app.command()
def projects(ctx: typer.Context) -> None:
    """List all projects."""
    with _workbench(ctx) as wb:
        for name, project in wb.state.projects.items():
            current = "*" if name == wb.project_name else " "
            typer.echo(f"{current} {name} ({len(project.files)} files, {len(project.marks)} marks)")


@app.command(name="new-project")
def new_project(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")) -> None:
    """Create a project with a sample file and switch to it."""
    with _workbench(ctx) as wb:
        wb.create_project(name)
        typer.echo(f"Created project '{wb.project_name}'")


@app.command(name="rename-project")
def rename_project(
    ctx: typer.Context, new_name: str = typer.Argument(..., help="New project name")
) -> None:
    """Rename the current project."""
    with _workbench(ctx) as wb:
        old = wb.project_name
        wb.rename_project(new_name)
        typer.echo(f"Renamed '{old}' to '{wb.project_name}'")


@app.command(name="delete-project")
def delete_project(
    ctx: typer.Context, name: str = typer.Argument(..., help="Project name")
) -> None:
    """Delete a project."""
    with _workbench(ctx) as wb:
        wb.delete_project(name)
        typer.echo(f"Deleted project '{name}'")


@app.command()
def use(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")) -> None:
    """Switch to another project."""
    with _workbench(ctx) as wb:
        wb.switch_project(name)
        typer.echo(f"Using project '{name}'")


# --- Files ---


@app.command()
def files(ctx: typer.Context) -> None:
    """List the files of the current project."""
    with _workbench(ctx) as wb:
        project = wb.project
        typer.echo(f"{len(project.files)} files in '{wb.project_name}':\n")
        for name, text_file in project.files.items():
            current = "*" if name == wb.active_file else " "
            flag = " (edited)" if text_file.dirty else ""
            typer.echo(
                f"{current} {name} - {len(text_file.content)} chars, "
                f"{len(text_file.occurrences)} occurrences{flag}"
            )


@app.command(name="add-file")
def add_file(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Path of a text file, or the file name with --content"),
    content: Annotated[
        str | None,
        typer.Option("--content", "-c", help="Use this text instead of reading a file"),
    ] = None,
) -> None:
    """Add a text file to the current project and open it."""
    with _workbench(ctx) as wb:
        if content is None:
            name = wb.upload_file(Path(source))
        else:
            name = wb.add_file(source, content)
        typer.echo(f"Added '{name}'")


@app.command(name="remove-file")
def remove_file(ctx: typer.Context, name: str = typer.Argument(..., help="File name")) -> None:
    """Remove a file from the current project."""
    with _workbench(ctx) as wb:
        wb.remove_file(name)
        typer.echo(f"Removed '{name}'")


@app.command(name="open")
def open_cmd(ctx: typer.Context, name: str = typer.Argument(..., help="File name")) -> None:
    """Make a file the active file."""
    with _workbench(ctx) as wb:
        wb.select_file(name)
        typer.echo(f"Opened '{name}'")


@app.command()
def edit(
    ctx: typer.Context,
    content: Annotated[
        str | None, typer.Option("--content", "-c", help="New content of the active file")
    ] = None,
    source: Annotated[
        Path | None, typer.Option("--from", "-f", help="Read new content from a file")
    ] = None,
) -> None:
    """Replace the content of the active file. Existing offsets are not adjusted."""
    if (content is None) == (source is None):
        typer.echo("Pass exactly one of --content or --from.")
        raise typer.Exit(1)
    with _workbench(ctx) as wb:
        text = source.read_text(encoding="utf-8") if source is not None else content or ""
        wb.edit_content(text)
        typer.echo(f"Updated '{wb.active_file}'. Run 'refresh' to re-index saved searches.")


@app.command()
def show(
    ctx: typer.Context,
    as_html: bool = typer.Option(False, "--html", help="Render as HTML"),
    tag_filter: Annotated[
        str | None, typer.Option("--filter", help="Tag shown at full opacity ('all' to reset)")
    ] = None,
) -> None:
    """Show the active file split into highlight segments."""
    with _workbench(ctx) as wb:
        if tag_filter is not None:
            wb.set_tag_filter(tag_filter)
        rendered = wb.render()
        if as_html:
            typer.echo(render_html(rendered))
            return
        typer.echo(f"{wb.active_file}:\n")
        for item in rendered:
            seg = item.segment
            if not item.marks:
                typer.echo(f"  [{seg.start}:{seg.end}] {seg.text!r}")
                continue
            labels = ", ".join(f"{m.type.value}: {m.name}" for m in item.marks)
            typer.echo(f"  [{seg.start}:{seg.end}] {seg.text!r}  <- {labels}")


# --- Tags and searches ---


@app.command()
def tag(
    ctx: typer.Context,
    start: int = typer.Argument(..., help="Start offset"),
    end: int = typer.Argument(..., help="End offset (exclusive)"),
    label: str = typer.Argument(..., help="Tag name"),
) -> None:
    """Tag a span of the active file."""
    with _workbench(ctx) as wb:
        before = len(wb.current_file.occurrences)
        wb.tag(Span(start, end), label)
        if len(wb.current_file.occurrences) == before:
            typer.echo("Nothing tagged.")
        else:
            typer.echo(f"Tagged [{start}:{end}] as '{label.strip()}'")


@app.command()
def untag(
    ctx: typer.Context,
    mark: str = typer.Argument(..., help="Mark name or id"),
    start: int = typer.Argument(..., help="Start offset"),
    end: int = typer.Argument(..., help="End offset (exclusive)"),
) -> None:
    """Remove one occurrence of a mark from the active file."""
    with _workbench(ctx) as wb:
        found = _resolve_mark(wb.project, mark)
        wb.remove_occurrence(found.id, Span(start, end))
        typer.echo(f"Removed {found.type.value} '{found.name}' at [{start}:{end}]")


@app.command()
def search(
    ctx: typer.Context,
    term: str = typer.Argument("", help="Search term (empty clears the live search)"),
    save: bool = typer.Option(False, "--save", "-s", help="Save as a Search across all files"),
    expansion: Annotated[
        str | None,
        typer.Option("--expansion", "-e", help="none, sentence or paragraph (for --save)"),
    ] = None,
) -> None:
    """Search the active file, optionally saving the term."""
    with _workbench(ctx) as wb:
        if expansion is not None:
            wb.set_expansion(_parse_expansion(expansion))
        wb.search(term)
        if save:
            wb.save_search(term)
        summaries = summarize_searches(wb.project, wb.active_file, wb.search_term)
        found = next((s for s in summaries if s.name.lower() == term.strip().lower()), None)
        count = found.count if found else 0
        typer.echo(f"Found {count} occurrences of '{term.strip()}' in '{wb.active_file}'")
        if found:
            for span, text in zip(found.spans, found.texts):
                typer.echo(f"  [{span.start}:{span.end}] {text!r}")
        if save:
            typer.echo(f"Saved search '{term.strip()}'")


@app.command()
def refresh(
    ctx: typer.Context,
    expansion: Annotated[
        str | None, typer.Option("--expansion", "-e", help="none, sentence or paragraph")
    ] = None,
) -> None:
    """Re-index every saved Search against current file contents."""
    with _workbench(ctx) as wb:
        if expansion is not None:
            wb.set_expansion(_parse_expansion(expansion))
        wb.refresh_all_searches()
        typer.echo(f"Refreshed {len(wb.project.marks_of_type(MarkType.SEARCH))} searches")


@app.command(name="remove-mark")
def remove_mark(
    ctx: typer.Context,
    mark: str = typer.Argument(..., help="Mark name or id"),
    search_only: bool = typer.Option(False, "--search", help="Only match saved Searches"),
) -> None:
    """Delete a mark, its occurrences in every file and its group memberships."""
    with _workbench(ctx) as wb:
        found = _resolve_mark(wb.project, mark, MarkType.SEARCH if search_only else None)
        wb.remove_mark(found.id)
        typer.echo(f"Removed {found.type.value} '{found.name}'")


@app.command(name="rename-mark")
def rename_mark(
    ctx: typer.Context,
    mark: str = typer.Argument(..., help="Mark name or id"),
    new_name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a Tag or Search."""
    with _workbench(ctx) as wb:
        found = _resolve_mark(wb.project, mark)
        wb.rename_mark(found.id, new_name)
        typer.echo(f"Renamed '{found.name}' to '{new_name.strip()}'")


@app.command()
def marks(ctx: typer.Context) -> None:
    """List marks and groups, with their counts in the active file."""
    with _workbench(ctx) as wb:
        counts = {
            s.mark_id: s.count
            for s in [
                *summarize_tags(wb.project, wb.active_file),
                *summarize_searches(wb.project, wb.active_file),
            ]
        }
        options = marks_for_tabulation(wb.project)
        typer.echo(f"{len(options)} marks and groups:\n")
        for opt in options:
            suffix = ""
            if opt.prefix != "Group":
                suffix = f" - {counts.get(opt.id, 0)} in {wb.active_file}"
            typer.echo(f"  {opt.selector}  [id={opt.id}]{suffix}")


# --- Groups ---


@group_app.command("list")
def group_list(ctx: typer.Context) -> None:
    """List groups with their member marks."""
    with _workbench(ctx) as wb:
        project = wb.project
        for group_id, group in project.groups.items():
            members = ", ".join(project.marks[m].name for m in group.marks if m in project.marks)
            typer.echo(f"  {group.name} [id={group_id}]: {members or '(empty)'}")


@group_app.command("create")
def group_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name"),
    mark: Annotated[
        list[str] | None, typer.Option("--mark", "-m", help="Member mark (repeatable)")
    ] = None,
) -> None:
    """Create a group, optionally with members."""
    with _workbench(ctx) as wb:
        ids = [_resolve_mark(wb.project, m).id for m in mark or []]
        group_id = wb.create_group(name)
        if ids:
            wb.update_group_marks(group_id, ids)
        typer.echo(f"Created group '{name.strip()}' [id={group_id}]")


@group_app.command("set")
def group_set(
    ctx: typer.Context,
    group: str = typer.Argument(..., help="Group name or id"),
    mark: Annotated[
        list[str] | None, typer.Option("--mark", "-m", help="Member mark (repeatable)")
    ] = None,
) -> None:
    """Replace the members of a group."""
    with _workbench(ctx) as wb:
        group_id = _resolve_group(wb.project, group)
        ids = [_resolve_mark(wb.project, m).id for m in mark or []]
        wb.update_group_marks(group_id, ids)
        typer.echo(f"Group now has {len(wb.project.groups[group_id].marks)} marks")


@group_app.command("delete")
def group_delete(
    ctx: typer.Context, group: str = typer.Argument(..., help="Group name or id")
) -> None:
    """Delete a group. Its member marks are kept."""
    with _workbench(ctx) as wb:
        wb.delete_group(_resolve_group(wb.project, group))
        typer.echo(f"Deleted group '{group}'")


@group_app.command("save-as-tag")
def group_save_as_tag(
    ctx: typer.Context,
    group: str = typer.Argument(..., help="Group name or id"),
    tag_name: str = typer.Argument(..., help="Name of the new Tag"),
) -> None:
    """Copy every member occurrence into a new Tag."""
    with _workbench(ctx) as wb:
        mark_id = wb.save_group_as_tag(_resolve_group(wb.project, group), tag_name)
        typer.echo(f"Saved group as Tag '{tag_name.strip()}' [id={mark_id}]")


# --- Tabulation ---


@app.command()
def tabulate(
    ctx: typer.Context,
    row: Annotated[list[str], typer.Option("--row", "-r", help="Row selector (repeatable)")],
    col: Annotated[list[str], typer.Option("--col", "-c", help="Column selector (repeatable)")],
    expansion: str = typer.Option("none", "--expansion", "-e", help="none, sentence or paragraph"),
    as_csv: bool = typer.Option(False, "--csv", help="Output CSV"),
    out_dir: Annotated[
        Path | None, typer.Option("--out", "-o", help="With --csv, also write tabulation.csv here")
    ] = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Cross-tabulate marks across all files of the current project.

    Selectors are Tag:<name>, Search:<name>, Group:<name> or a bare term.
    """
    exp = _parse_expansion(expansion)
    with _workbench(ctx) as wb:
        matrix = wb.tabulate(row, col, exp)
        if matrix is None:
            typer.echo("Nothing to tabulate.")
            raise typer.Exit(1)
        if as_csv:
            typer.echo(to_csv(matrix))
            if out_dir is not None:
                out_dir.mkdir(parents=True, exist_ok=True)
                typer.echo(f"Saved {write_csv(matrix, out_dir)}")
        elif output_json:
            typer.echo(json.dumps(matrix_counts(matrix), indent=2))
        else:
            table = to_csv_rows(matrix)
            widths = [max(len(line[i]) for line in table) for i in range(len(table[0]))]
            for line in table:
                typer.echo("  ".join(cell.ljust(w) for cell, w in zip(line, widths)).rstrip())


# --- Synonyms ---


@app.command()
def synonyms(
    ctx: typer.Context,
    word: str = typer.Argument("", help="Word to look up (default: the live search term)"),
    accept: bool = typer.Option(False, "--accept", "-a", help="Save every suggestion as a Search"),
    url: str = typer.Option(SYNONYM_API_URL, "--url", help="Synonym service endpoint"),
) -> None:
    """Suggest related words, optionally saving them as Searches."""
    with _workbench(ctx) as wb:
        suggestions = wb.fetch_synonyms(SynonymClient(url), word or None)
        if not suggestions:
            typer.echo("No word to look up. Pass one or run 'search' first.")
            raise typer.Exit(1)
        for s in suggestions:
            typer.echo(f"  {s}")
        if accept:
            wb.accept_synonyms(suggestions)
            typer.echo(f"Saved {len(suggestions)} searches")


# --- Import / export ---


@app.command()
def export(
    ctx: typer.Context,
    out_dir: Annotated[
        Path, typer.Option("--out", "-o", help="Directory for the snapshot file")
    ] = Path(),
) -> None:
    """Export all projects as a JSON snapshot named after the current project."""
    with _workbench(ctx) as wb:
        out_dir.mkdir(parents=True, exist_ok=True)
        path = wb.export(out_dir)
        typer.echo(f"Exported to {path}")


@app.command(name="import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[Path | None, typer.Argument(help="Snapshot JSON file")] = None,
    url: Annotated[
        str | None, typer.Option("--url", "-u", help="Fetch the snapshot from a URL")
    ] = None,
) -> None:
    """Replace all projects with a snapshot from a file or URL."""
    if (path is None) == (url is None):
        typer.echo("Pass exactly one of PATH or --url.")
        raise typer.Exit(1)
    with _workbench(ctx) as wb:
        if url is not None:
            wb.load_remote(url)
        elif path is not None:
            wb.load_snapshot_text(path.read_text(encoding="utf-8"))
        typer.echo(f"Imported {len(wb.state.projects)} projects; using '{wb.project_name}'")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from qda_workbench.mcp.server import run_mcp_server

    run_mcp_server()
