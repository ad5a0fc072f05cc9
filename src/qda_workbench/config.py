"""Configuration constants for the QDA workbench."""

import os
from pathlib import Path

from qda_workbench.models.project import Expansion

# Directory with the workbench database. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/qda-workbench").expanduser(),
    Path("~/.qda-workbench").expanduser(),
]

DATABASE_FILENAME = "workbench.db"

# Key under which the whole project snapshot is stored.
STORAGE_KEY = "textViewerState"

# Key under which the active project/file selection is stored.
SESSION_KEY = "session"

# Upper bound on matches returned by one indexer scan.
INDEX_SAFETY_LIMIT = 1000

DEFAULT_EXPANSION = Expansion[os.environ.get("QDA_EXPANSION", "NONE").upper()]

SYNONYM_API_URL: str = os.environ.get("QDA_SYNONYM_URL", "http://localhost:3000/api/synonyms")
SYNONYM_TIMEOUT = 10.0

# Log level name (DEBUG, INFO, WARNING, ...); overrides --verbose when set.
LOG_LEVEL: str | None = os.environ.get("QDA_LOG_LEVEL")

DEFAULT_PROJECT_NAME = "Text Analysis Project"
SAMPLE_FILE_NAME = "sample.txt"
DEFAULT_SAMPLE_CONTENT = (
    "This is a sample text. You can right-click on any part of this text to add tags to it, "
    "including overlapping tags."
)
NEW_PROJECT_SAMPLE_CONTENT = "This is a sample text for your new project."

# Highlight color for occurrences of an unsaved search.
PENDING_SEARCH_COLOR = "hsl(200, 100%, 80%)"


def resolve_data_directory() -> Path:
    """Return the data directory: $QDA_DATA_DIR, else the first existing default."""
    override = os.environ.get("QDA_DATA_DIR")
    if override:
        return Path(override).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
