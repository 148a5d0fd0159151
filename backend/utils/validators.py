"""
Upload validation rules.

Each check raises a ``ValidationError`` subclass carrying the stable error code
returned to the client, so a request is rejected before anything is staged.
"""

from typing import Iterable

from utils.error_handlers import (
    FileTooLargeError,
    InvalidFileTypeError,
    NoFilesError,
    TooManyFilesError,
)
from utils.file_utils import format_size

# Declared type aliases mapped onto the type sent to the inference service
MIME_TYPE_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
}


def normalize_mime_type(mime_type: str) -> str:
    """Lower-case a declared MIME type, drop parameters and resolve aliases"""
    base = (mime_type or "").split(";", 1)[0].strip().lower()
    return MIME_TYPE_ALIASES.get(base, base)


def validate_file_count(count: int, max_files: int) -> int:
    """
    Validate the number of attachments in a request.

    Args:
        count: Number of attached files
        max_files: Maximum number of files per request

    Returns:
        The count, if valid

    Raises:
        NoFilesError: If nothing was attached
        TooManyFilesError: If more than ``max_files`` were attached
    """
    if count <= 0:
        raise NoFilesError()
    if count > max_files:
        raise TooManyFilesError(max_files)
    return count


def validate_mime_type(mime_type: str, allowed: Iterable[str]) -> str:
    """
    Validate a declared MIME type against the allow-list.

    Returns:
        The declared type, lower-cased and without parameters

    Raises:
        InvalidFileTypeError: If the type is not allowed
    """
    declared = (mime_type or "").split(";", 1)[0].strip().lower()
    if declared not in {m.lower() for m in allowed}:
        raise InvalidFileTypeError()
    return declared


def validate_file_size(size: int, max_size: int) -> int:
    """
    Validate a file size in bytes.

    Raises:
        FileTooLargeError: If ``size`` exceeds ``max_size``
    """
    if size > max_size:
        raise FileTooLargeError(format_size(max_size))
    return size
