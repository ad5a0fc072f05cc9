"""File name validation and plain-text file import."""

import re
from pathlib import Path

from loguru import logger

from qda_workbench.errors import ValidationError

MAX_FILE_NAME_LENGTH = 255

_FORBIDDEN = re.compile(r'[\\/:*?"<>|\s]')

FILE_NAME_EMPTY_ERROR = "Filename cannot be empty or whitespace."
FILE_NAME_FORMAT_ERROR = (
    'Filename cannot contain spaces or special characters (\\ / : * ? " < > |).'
)
FILE_NAME_LENGTH_ERROR = f"Filename cannot be longer than {MAX_FILE_NAME_LENGTH} characters."


def validate_file_name(file_name: str) -> None:
    """Raise ValidationError unless file_name is usable as a project file name."""
    if not file_name or not file_name.strip():
        raise ValidationError(FILE_NAME_EMPTY_ERROR)
    if _FORBIDDEN.search(file_name):
        raise ValidationError(FILE_NAME_FORMAT_ERROR)
    if len(file_name) > MAX_FILE_NAME_LENGTH:
        raise ValidationError(FILE_NAME_LENGTH_ERROR)


def add_txt_extension(file_name: str) -> str:
    """Append ``.txt`` to a trimmed name that has no extension."""
    trimmed = file_name.strip()
    if not trimmed:
        return ""
    stem, dot, ext = trimmed.rpartition(".")
    if dot and stem and ext:
        return trimmed
    return f"{trimmed}.txt"


def read_text_file(path: Path) -> tuple[str, str]:
    """Read a text file from disk.

    Returns:
        Tuple of (file name, content). Undecodable bytes are replaced.
    """
    content = path.read_text(encoding="utf-8", errors="replace")
    logger.debug("Read {} ({} chars)", path, len(content))
    return path.name, content
