"""Exceptions raised by the QDA workbench."""


class QdaError(Exception):
    """Base class for workbench errors."""


class ValidationError(QdaError, ValueError):
    """A requested mutation was rejected before any state change."""


class SnapshotParseError(QdaError, ValueError):
    """An uploaded or remote project snapshot could not be parsed."""
