"""
Re-openable chunk sources for reading feeds.
Each pass opens its own chunk iterator over the same logical source.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class FileSource:
    """Chunk source backed by a local file."""

    def __init__(self, file_path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize source.

        Args:
            file_path: Path to the XML feed
            chunk_size: Bytes per chunk
        """
        self.file_path = Path(file_path)
        self.chunk_size = chunk_size

    @property
    def size(self) -> int:
        """Total size in bytes, or 0 if the file cannot be inspected."""
        try:
            return self.file_path.stat().st_size
        except OSError:
            return 0

    def open(self) -> Iterator[bytes]:
        """
        Stream the file in chunks.

        Raises:
            FileNotFoundError: If the file doesn't exist (on first read)
        """
        logger.debug(f"Opening {self.file_path.name} ({self.size} bytes)")
        with open(self.file_path, 'rb') as f:
            while chunk := f.read(self.chunk_size):
                yield chunk

    def __repr__(self) -> str:
        return f"FileSource({str(self.file_path)!r})"


class BytesSource:
    """Chunk source over an in-memory document."""

    def __init__(self, data: Union[bytes, str], chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.data = data.encode('utf-8') if isinstance(data, str) else bytes(data)
        self.chunk_size = chunk_size

    @property
    def size(self) -> int:
        return len(self.data)

    def open(self) -> Iterator[bytes]:
        for offset in range(0, len(self.data), self.chunk_size):
            yield self.data[offset:offset + self.chunk_size]

    def __repr__(self) -> str:
        return f"BytesSource({len(self.data)} bytes)"


def as_source(source, chunk_size: Optional[int] = None):
    """
    Coerce paths and byte strings into chunk sources.

    Objects that already provide open() are returned unchanged.
    """
    if hasattr(source, 'open') and not isinstance(source, (str, Path)):
        return source
    if isinstance(source, (bytes, bytearray)):
        return BytesSource(bytes(source), chunk_size or DEFAULT_CHUNK_SIZE)
    if isinstance(source, (str, Path)):
        return FileSource(Path(source), chunk_size or DEFAULT_CHUNK_SIZE)
    raise TypeError(f"Unsupported source type: {type(source).__name__}")


def source_size(source) -> int:
    """Known total size of a source, 0 when unknown."""
    return getattr(source, 'size', 0) or 0
