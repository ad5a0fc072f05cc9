"""SQLite-backed key/value blob store for the workbench snapshot."""

import sqlite3
import time
from pathlib import Path

from loguru import logger

from qda_workbench.core.database.schema import get_value, migrate_schema, set_value


class SnapshotStore:
    """Persist string blobs under fixed keys, like browser local storage.

    Writing a blob identical to the stored one is skipped.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        migrate_schema(self.conn)
        logger.debug("Store ready at {!r}", self.db_path)

    def read(self, key: str) -> str | None:
        return get_value(self.conn, key)

    def write(self, key: str, value: str) -> None:
        if get_value(self.conn, key) == value:
            logger.debug("Store key {!r} unchanged", key)
            return
        set_value(self.conn, key, value, now_ms=int(time.time() * 1000))
        logger.debug("Stored {!r} ({} chars)", key, len(value))

    def close(self) -> None:
        self.conn.close()
