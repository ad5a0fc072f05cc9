"""MCP server exposing project files, searches, segments and tabulation."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from qda_workbench.config import DATABASE_FILENAME, resolve_data_directory
from qda_workbench.core.render.segments import render_file
from qda_workbench.core.search.indexer import index
from qda_workbench.core.tabulate.engine import matrix_counts, tabulate
from qda_workbench.models.project import AppState, Expansion, Project
from qda_workbench.session import Workbench
from qda_workbench.store import SnapshotStore


def _resolve_project(state: AppState, project: str | None) -> tuple[str, Project] | None:
    name = project or state.first_project_name
    if name is None or name not in state.projects:
        return None
    return name, state.projects[name]


def _parse_expansion(value: str) -> Expansion | None:
    try:
        return Expansion[value.upper()]
    except KeyError:
        return None


# --- Core functions (testable without MCP context) ---


def qda_list_files(state: AppState, *, project: str | None = None) -> dict[str, Any]:
    """List the projects and the files of one project with occurrence counts."""
    resolved = _resolve_project(state, project)
    if resolved is None:
        return {"error": f"Project '{project}' not found.", "projects": list(state.projects)}
    name, proj = resolved
    return {
        "projects": list(state.projects),
        "project": name,
        "files": [
            {
                "name": fname,
                "length": len(f.content),
                "occurrences": len(f.occurrences),
                "dirty": bool(f.dirty),
            }
            for fname, f in proj.files.items()
        ],
        "marks": [
            {"id": m.id, "type": m.type.value, "name": m.name, "color": m.color}
            for m in proj.marks.values()
        ],
        "groups": [
            {"id": gid, "name": g.name, "marks": list(g.marks)} for gid, g in proj.groups.items()
        ],
    }


def qda_search(
    state: AppState,
    *,
    term: str,
    project: str | None = None,
    file: str | None = None,
    expansion: str = "none",
    limit: int = 50,
) -> dict[str, Any]:
    """Find case-insensitive matches of a term without saving anything.

    Args:
        term: Literal text to look for.
        project: Project name (default: first project).
        file: Restrict to one file.
        expansion: "none", "sentence" or "paragraph".
        limit: Max results returned (1-1000).
    """
    if not term.strip():
        return {"error": "No search term provided.", "results": [], "count": 0, "total": 0}
    exp = _parse_expansion(expansion)
    if exp is None:
        return {"error": f"Unknown expansion '{expansion}'.", "results": [], "count": 0}
    resolved = _resolve_project(state, project)
    if resolved is None:
        return {"error": f"Project '{project}' not found.", "results": [], "count": 0}
    _name, proj = resolved
    if file is not None and file not in proj.files:
        return {"error": f"File '{file}' not found.", "results": [], "count": 0}

    limit = max(1, min(limit, 1000))
    results: list[dict[str, Any]] = []
    total = 0
    for fname, f in proj.files.items():
        if file is not None and fname != file:
            continue
        for span in index(term, f.content, exp):
            total += 1
            if len(results) < limit:
                results.append(
                    {
                        "file": fname,
                        "start": span.start,
                        "end": span.end,
                        "text": f.content[span.start : span.end],
                    }
                )
    return {"results": results, "count": len(results), "total": total}


def qda_segments(
    state: AppState,
    *,
    file: str,
    project: str | None = None,
    search_term: str = "",
    tag_filter: str = "all",
) -> dict[str, Any]:
    """Return the highlight segments of a file with their covering marks."""
    resolved = _resolve_project(state, project)
    if resolved is None:
        return {"error": f"Project '{project}' not found."}
    _name, proj = resolved
    if file not in proj.files:
        return {"error": f"File '{file}' not found."}

    segments = []
    for item in render_file(proj, file, search_term=search_term, tag_filter=tag_filter):
        entry: dict[str, Any] = {
            "start": item.segment.start,
            "end": item.segment.end,
            "text": item.segment.text,
            "marks": [{"type": m.type.value, "name": m.name} for m in item.marks],
        }
        if item.style is not None:
            entry["background"] = item.style.background
            entry["opacity"] = item.style.opacity
        segments.append(entry)
    return {"file": file, "segments": segments, "count": len(segments)}


def qda_tabulate(
    state: AppState,
    *,
    rows: list[str],
    cols: list[str],
    project: str | None = None,
    expansion: str = "none",
) -> dict[str, Any]:
    """Cross-tabulate row and column selectors over every file of a project.

    Args:
        rows: Selectors such as "Tag:Fruit", "Search:apple", "Group:Food" or a bare term.
        cols: Selectors, same syntax as rows.
        project: Project name (default: first project).
        expansion: "none" compares overlap; "sentence"/"paragraph" compare expanded spans.
    """
    exp = _parse_expansion(expansion)
    if exp is None:
        return {"error": f"Unknown expansion '{expansion}'."}
    resolved = _resolve_project(state, project)
    if resolved is None:
        return {"error": f"Project '{project}' not found."}
    _name, proj = resolved

    matrix = tabulate(proj, [r for r in rows if r.strip()], [c for c in cols if c.strip()], exp)
    if matrix is None:
        return {"error": "At least one row and one column are required."}
    return matrix_counts(matrix)


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    store: SnapshotStore

    def state(self) -> AppState:
        """Reload the stored snapshot so changes made by the CLI are visible."""
        return Workbench.open(self.store).state


def _resolve_db_path() -> Path:
    return resolve_data_directory() / DATABASE_FILENAME


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the store on startup, close on shutdown."""
    store = SnapshotStore(_resolve_db_path())
    logger.info("MCP server using {}", store.db_path)
    try:
        yield ServerContext(store=store)
    finally:
        store.close()


mcp_server = FastMCP(
    "qda-workbench",
    instructions="""\
The QDA workbench holds projects of plain-text files annotated with Tags
(hand-placed highlights) and Searches (saved terms indexed in every file).

1. Call qda_list_files_tool to see the projects, files and marks.
2. Use qda_search_tool to try a term before relying on it.
3. Use qda_segments_tool to read a file together with its highlights.
4. Use qda_tabulate_tool to count how often marks co-occur across files.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def qda_list_files_tool(ctx: Context, project: str | None = None) -> dict[str, Any]:
    """List projects, and the files, marks and groups of one project.

    Args:
        project: Project name (default: first project).
    """
    return qda_list_files(_ctx(ctx).state(), project=project)


@mcp_server.tool()
async def qda_search_tool(
    ctx: Context,
    term: str,
    project: str | None = None,
    file: str | None = None,
    expansion: str = "none",
    limit: int = 50,
) -> dict[str, Any]:
    """Search files for a literal, case-insensitive term. Nothing is saved.

    Args:
        term: Text to look for.
        project: Project name (default: first project).
        file: Restrict to one file.
        expansion: "none", "sentence" or "paragraph".
        limit: Max results (1-1000, default 50).
    """
    return qda_search(
        _ctx(ctx).state(),
        term=term,
        project=project,
        file=file,
        expansion=expansion,
        limit=limit,
    )


@mcp_server.tool()
async def qda_segments_tool(
    ctx: Context,
    file: str,
    project: str | None = None,
    tag_filter: str = "all",
) -> dict[str, Any]:
    """Read a file as highlight segments with the marks covering each one.

    Args:
        file: File name.
        project: Project name (default: first project).
        tag_filter: Tag name whose highlights are shown at full opacity.
    """
    return qda_segments(_ctx(ctx).state(), file=file, project=project, tag_filter=tag_filter)


@mcp_server.tool()
async def qda_tabulate_tool(
    ctx: Context,
    rows: list[str],
    cols: list[str],
    project: str | None = None,
    expansion: str = "none",
) -> dict[str, Any]:
    """Count co-occurrences of row and column marks across all files.

    Args:
        rows: Selectors such as "Tag:Fruit", "Search:apple", "Group:Food".
        cols: Selectors, same syntax as rows.
        project: Project name (default: first project).
        expansion: "none", "sentence" or "paragraph".
    """
    return qda_tabulate(
        _ctx(ctx).state(), rows=rows, cols=cols, project=project, expansion=expansion
    )


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from qda_workbench.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
