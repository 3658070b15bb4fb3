"""
Utility functions for file output and display formatting.
"""

import logging
from pathlib import Path


logger = logging.getLogger(__name__)


def ensure_directory(dir_path: Path) -> Path:
    """Ensure directory exists, create if not."""
    dir_path = Path(dir_path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def safe_write_bytes(file_path: Path, content: bytes) -> Path:
    """
    Write bytes to a file, creating parent directories.

    The content is written to a temporary sibling first and then moved into
    place so a failed write never leaves a truncated export behind.

    Args:
        file_path: Destination path
        content: Bytes to write

    Returns:
        The destination path
    """
    file_path = Path(file_path)
    ensure_directory(file_path.parent)

    tmp_path = file_path.with_name(f".{file_path.name}.tmp")
    with open(tmp_path, 'wb') as f:
        f.write(content)
    tmp_path.replace(file_path)

    logger.debug(f"Written {len(content)} bytes to {file_path}")
    return file_path


def truncate_string(s: str, max_length: int = 100) -> str:
    """Truncate string for logging/display."""
    if len(s) <= max_length:
        return s
    return s[:max_length - 3] + "..."


def format_bytes(size: int) -> str:
    """Human readable byte count."""
    value = float(size)
    for unit in ('B', 'KB', 'MB', 'GB'):
        if value < 1024 or unit == 'GB':
            return f"{value:.0f} {unit}" if unit == 'B' else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"
