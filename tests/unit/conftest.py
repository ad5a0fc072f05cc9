"""Shared test fixtures."""

from collections.abc import Iterator

import pytest

from qda_workbench.core.state.commands import add_tag, save_search
from qda_workbench.models.project import AppState, Expansion, Span
from qda_workbench.store import SnapshotStore
from tests.unit.fakes import CAT_CONTENT, PROJECT, TWO_FILES, FakeStore, build_state


@pytest.fixture
def cat_state() -> AppState:
    """One file with a Tag "Animal" at (0,3) and a saved Search "cat"."""
    state = build_state({"cats.txt": CAT_CONTENT})
    state = add_tag(state, PROJECT, "cats.txt", Span(0, 3), "Animal", color="red")
    return save_search(state, PROJECT, "cat", expansion=Expansion.NONE, color="blue")


@pytest.fixture
def two_file_state() -> AppState:
    return build_state(TWO_FILES)


@pytest.fixture
def memory_store() -> Iterator[SnapshotStore]:
    store = SnapshotStore(":memory:")
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
