"""Stateful workbench: active selection, command dispatch and persistence."""

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from loguru import logger

from qda_workbench.config import DEFAULT_EXPANSION, SESSION_KEY, STORAGE_KEY
from qda_workbench.core.importer.filenames import read_text_file
from qda_workbench.core.importer.snapshot import dump_snapshot, export_snapshot, parse_snapshot
from qda_workbench.core.render.segments import RenderedSegment, render_file
from qda_workbench.core.state import commands, groups, projects
from qda_workbench.core.tabulate.engine import Matrix, tabulate
from qda_workbench.errors import SnapshotParseError, ValidationError
from qda_workbench.models.project import AppState, Expansion, Project, Span, TextFile
from qda_workbench.protocols import StoreProtocol, SynonymClientProtocol
from qda_workbench.remote import fetch_remote_snapshot


class Workbench:
    """Holds the application state and the user's current selection.

    Every mutating method applies one pure command to the state and then
    writes the whole snapshot to the store. Occurrences of the live search
    are kept in memory only; the search term itself is part of the stored
    session and is re-run when the workbench is opened again.
    """

    def __init__(
        self,
        store: StoreProtocol,
        state: AppState | None = None,
        *,
        expansion: Expansion = DEFAULT_EXPANSION,
    ) -> None:
        self.store = store
        self.state = state if state is not None else projects.default_state()
        self.expansion = expansion
        self.project_name: str = self.state.first_project_name or ""
        self.active_file: str = self._first_file(self.project_name)
        self.search_term = ""
        self.tag_filter = "all"

    @classmethod
    def open(cls, store: StoreProtocol) -> "Workbench":
        """Restore a workbench from the store, or start from the default state."""
        state: AppState | None = None
        raw = store.read(STORAGE_KEY)
        if raw is not None:
            try:
                state = parse_snapshot(raw)
            except SnapshotParseError:
                logger.exception("Stored snapshot is unreadable, starting from defaults")
        wb = cls(store, state if state and state.projects else None)
        wb._restore_session(store.read(SESSION_KEY))
        return wb

    def _restore_session(self, raw: str | None) -> None:
        if raw is None:
            return
        try:
            data: dict[str, Any] = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable session data")
            return
        try:
            self.expansion = Expansion(data.get("expansion", int(self.expansion)))
        except ValueError:
            logger.warning("Ignoring unknown expansion {!r}", data.get("expansion"))
        project_name = data.get("project")
        if project_name in self.state.projects:
            self.project_name = project_name
            self.active_file = self._first_file(project_name)
        if data.get("file") in self.project.files:
            self.active_file = data["file"]
        self.tag_filter = data.get("tag_filter") or "all"
        term = data.get("search_term") or ""
        if term and self.active_file:
            self.search_term = term
            self.state = commands.set_search_term(
                self.state, self.project_name, self.active_file, term
            )

    # --- Selection ---

    def _first_file(self, project_name: str) -> str:
        project = self.state.projects.get(project_name)
        if project is None:
            return ""
        return next(iter(project.files), "")

    @property
    def project(self) -> Project:
        return self.state.project(self.project_name)

    @property
    def current_file(self) -> TextFile:
        return self.project.files.get(self.active_file) or TextFile(content="")

    def _require_file(self) -> str:
        if not self.active_file:
            msg = "No active file"
            raise ValidationError(msg)
        return self.active_file

    def _commit(self, state: AppState) -> None:
        self.state = state
        self.persist()

    def persist(self) -> None:
        """Write the snapshot and the session to the store."""
        self.store.write(STORAGE_KEY, dump_snapshot(self.state))
        session = {
            "project": self.project_name,
            "file": self.active_file,
            "search_term": self.search_term,
            "tag_filter": self.tag_filter,
            "expansion": int(self.expansion),
        }
        self.store.write(SESSION_KEY, json.dumps(session, sort_keys=True))

    def switch_project(self, name: str) -> None:
        self.state.project(name)
        self._clear_search()
        self.project_name = name
        self.active_file = self._first_file(name)
        self.tag_filter = "all"
        self.persist()

    def select_file(self, file_name: str) -> None:
        commands.get_file(self.project, file_name)
        self._clear_search()
        self.active_file = file_name
        self.tag_filter = "all"
        self.persist()

    def set_tag_filter(self, value: str) -> None:
        self._clear_search()
        self.tag_filter = value or "all"
        self.persist()

    def set_expansion(self, expansion: Expansion) -> None:
        self.expansion = expansion
        self.persist()

    # --- Projects and files ---

    def create_project(self, name: str) -> None:
        self._commit(projects.create_project(self.state, name))
        self.switch_project(name.strip())

    def rename_project(self, new_name: str) -> None:
        new_name = new_name.strip()
        self.state = projects.rename_project(self.state, self.project_name, new_name)
        self.project_name = new_name
        self.persist()

    def delete_project(self, name: str) -> None:
        state = projects.delete_project(self.state, name)
        if not state.projects:
            state = projects.default_state()
        self.state = state
        if name == self.project_name or self.project_name not in state.projects:
            self.project_name = state.first_project_name or ""
            self.active_file = self._first_file(self.project_name)
            self.search_term = ""
        self.persist()

    def add_file(self, file_name: str, content: str) -> str:
        """Add a file and make it active. Returns the stored file name."""
        before = set(self.project.files)
        self.state = projects.add_file(self.state, self.project_name, file_name, content)
        self._clear_search()
        added = next(iter(set(self.project.files) - before))
        self.active_file = added
        self.persist()
        return added

    def upload_file(self, path: Path) -> str:
        name, content = read_text_file(path)
        return self.add_file(name, content)

    def remove_file(self, file_name: str) -> None:
        if file_name == self.active_file:
            self._clear_search()
        self.state = projects.remove_file(self.state, self.project_name, file_name)
        if file_name == self.active_file:
            self.active_file = self._first_file(self.project_name)
        self.persist()

    def edit_content(self, content: str) -> None:
        self._commit(
            projects.edit_content(self.state, self.project_name, self._require_file(), content)
        )

    # --- Tags and searches ---

    def tag(self, span: Span | None, label: str) -> None:
        self._commit(
            commands.add_tag(self.state, self.project_name, self._require_file(), span, label)
        )

    def remove_occurrence(self, mark_id: str, span: Span) -> None:
        self._commit(
            commands.remove_occurrence(
                self.state, self.project_name, self._require_file(), mark_id, span
            )
        )

    def _clear_search(self) -> None:
        if self.active_file and self.active_file in self.project.files:
            self.state = commands.clear_search_term(
                self.state, self.project_name, self.active_file
            )
        self.search_term = ""

    def search(self, term: str) -> None:
        """Run a live search over the active file without saving it."""
        self.search_term = term.strip()
        self.tag_filter = "all"
        self._commit(
            commands.set_search_term(
                self.state, self.project_name, self._require_file(), self.search_term
            )
        )

    def save_search(self, term: str | None = None) -> None:
        """Save the live search (or ``term``) across every file of the project."""
        self._commit(
            commands.save_search(
                self.state,
                self.project_name,
                term if term is not None else self.search_term,
                expansion=self.expansion,
            )
        )

    def remove_mark(self, mark_id: str) -> None:
        removed = self.project.marks.get(mark_id)
        self._commit(commands.remove_mark(self.state, self.project_name, mark_id))
        if removed is not None and self.tag_filter == removed.name:
            self.tag_filter = "all"
            self.persist()

    def remove_search(self, name: str) -> None:
        self._commit(commands.remove_search_by_name(self.state, self.project_name, name))

    def rename_mark(self, mark_id: str, new_name: str) -> None:
        self._commit(commands.rename_mark(self.state, self.project_name, mark_id, new_name))

    def refresh_all_searches(self) -> None:
        self._commit(
            commands.refresh_all_searches(self.state, self.project_name, expansion=self.expansion)
        )

    # --- Groups ---

    def create_group(self, name: str) -> str:
        state, group_id = groups.create_group(self.state, self.project_name, name)
        self._commit(state)
        return group_id

    def update_group_marks(self, group_id: str, mark_ids: Iterable[str]) -> None:
        self._commit(groups.update_group_marks(self.state, self.project_name, group_id, mark_ids))

    def add_mark_to_group(self, group_id: str, mark_id: str) -> None:
        self._commit(groups.add_mark_to_group(self.state, self.project_name, group_id, mark_id))

    def remove_mark_from_group(self, group_id: str, mark_id: str) -> None:
        self._commit(
            groups.remove_mark_from_group(self.state, self.project_name, group_id, mark_id)
        )

    def delete_group(self, group_id: str) -> None:
        self._commit(groups.delete_group(self.state, self.project_name, group_id))

    def save_group_as_tag(self, group_id: str, tag_name: str) -> str:
        state, mark_id = groups.save_group_as_tag(self.state, self.project_name, group_id, tag_name)
        self._commit(state)
        return mark_id

    # --- Synonyms ---

    def fetch_synonyms(self, client: SynonymClientProtocol, word: str | None = None) -> list[str]:
        """Ask the synonym service about ``word`` (default: the live search term)."""
        word = (word if word is not None else self.search_term).strip()
        if not word:
            return []
        return client.fetch(word, context=self.current_file.content)

    def accept_synonyms(self, selected: Iterable[str]) -> None:
        self._commit(
            commands.apply_synonyms(
                self.state, self.project_name, list(selected), expansion=self.expansion
            )
        )

    # --- Views ---

    def render(self) -> list[RenderedSegment]:
        return render_file(
            self.project,
            self.active_file,
            search_term=self.search_term,
            tag_filter=self.tag_filter,
        )

    def tabulate(
        self, rows: list[str], cols: list[str], expansion: Expansion | None = None
    ) -> Matrix | None:
        return tabulate(
            self.project, rows, cols, self.expansion if expansion is None else expansion
        )

    # --- Import / export ---

    def export(self, out_dir: Path) -> Path:
        return export_snapshot(self.state, self.project_name, out_dir)

    def replace_state(self, state: AppState) -> None:
        """Replace everything and select the first project and its first file."""
        if not state.projects:
            msg = "Snapshot contains no projects"
            raise SnapshotParseError(msg)
        self.state = state
        self.project_name = state.first_project_name or ""
        self.active_file = self._first_file(self.project_name)
        self.search_term = ""
        self.tag_filter = "all"
        self.persist()
        logger.info("Loaded snapshot with {} projects", len(state.projects))

    def load_snapshot_text(self, text: str) -> None:
        """Replace the state from snapshot JSON; on error the state is untouched."""
        self.replace_state(parse_snapshot(text))

    def load_remote(self, url: str) -> None:
        self.replace_state(fetch_remote_snapshot(url))
