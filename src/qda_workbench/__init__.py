"""Qualitative data analysis workbench: tag, search and cross-tabulate text files."""

from qda_workbench.protocols import StoreProtocol, SynonymClientProtocol
from qda_workbench.session import Workbench
from qda_workbench.store import SnapshotStore
from qda_workbench.synonyms import SynonymClient

__all__ = [
    "SnapshotStore",
    "StoreProtocol",
    "SynonymClient",
    "SynonymClientProtocol",
    "Workbench",
]
