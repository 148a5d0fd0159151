"""
File handling utilities
"""

import os
import re
from pathlib import Path
from typing import Union

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def ensure_directory(path: Union[str, Path]) -> Path:
    """Ensure directory exists, create if not"""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe storage"""
    # Remove path components, including Windows-style ones
    filename = os.path.basename((filename or "").replace("\\", "/"))
    filename = UNSAFE_FILENAME_CHARS.sub("_", filename)
    if not filename or set(filename) <= {"."}:
        filename = "upload"
    return filename


def staged_filename(timestamp_ms: int, original_name: str) -> str:
    """Build the staging name ``<timestamp>-<sanitized original name>``"""
    return f"{timestamp_ms}-{sanitize_filename(original_name)}"


def format_size(size_bytes: int) -> str:
    """Human readable size: whole or fractional MB, KB below one megabyte"""
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.3g}MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.3g}KB"
    return f"{size_bytes} bytes"
