"""Fake implementations and state builders for testing the workbench."""

from qda_workbench.models.project import AppState, Project, TextFile

PROJECT = "Test"

# Second "cat" ends the text, so a tag on the first one plus a search yields three segments.
CAT_CONTENT = "cat sat on the mat cat"

TWO_FILES = {
    "file1.txt": "x apple x apple",
    "file2.txt": "apple x x",
}


class FakeStore:
    """In-memory fake for SnapshotStore.

    Keeps blobs in a dict and records every write for assertions.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.writes: list[str] = []

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.writes.append(key)
        self.data[key] = value


class FakeSynonymClient:
    """In-memory fake for SynonymClient returning canned suggestions."""

    def __init__(self, suggestions: list[str] | None = None) -> None:
        self.suggestions = suggestions if suggestions is not None else ["feline", "kitty"]
        self.calls: list[tuple[str, str]] = []

    def fetch(self, word: str, *, context: str = "") -> list[str]:
        """Return the canned suggestions and record the call."""
        self.calls.append((word, context))
        return list(self.suggestions)


def build_state(files: dict[str, str], *, project: str = PROJECT) -> AppState:
    """Build a single-project state holding the given file contents."""
    return AppState(
        projects={
            project: Project(files={name: TextFile(content=c) for name, c in files.items()})
        }
    )
