"""Load a project snapshot from a URL."""

import requests
from loguru import logger

from qda_workbench.core.importer.snapshot import parse_snapshot
from qda_workbench.errors import SnapshotParseError
from qda_workbench.models.project import AppState

REMOTE_TIMEOUT = 30.0


def fetch_remote_snapshot(url: str, *, session: requests.Session | None = None) -> AppState:
    """Download and parse a snapshot. No retry; failures raise SnapshotParseError."""
    sess = session or requests.Session()
    logger.info("Fetching snapshot from {}", url)
    try:
        r = sess.get(url, timeout=REMOTE_TIMEOUT)
        r.raise_for_status()
    except requests.RequestException as e:
        msg = f"Could not fetch snapshot from {url!r}: {e}"
        raise SnapshotParseError(msg) from e
    return parse_snapshot(r.text)
