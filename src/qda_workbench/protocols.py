"""Protocols for dependency injection in the workbench."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class SynonymClientProtocol(Protocol):
    """Protocol for word-suggestion services."""

    def fetch(self, word: str, *, context: str = "") -> list[str]:
        """Return candidate synonyms for a word. Never raises, never empty."""
        ...


@runtime_checkable
class StoreProtocol(Protocol):
    """Protocol for the key/value blob store backing a workbench."""

    def read(self, key: str) -> str | None:
        """Return the stored blob, or None if the key is unset."""
        ...

    def write(self, key: str, value: str) -> None:
        """Store a blob under a key, replacing any previous value."""
        ...
