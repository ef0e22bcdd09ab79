"""
Module for reading byte ranges of the file being uploaded.
"""
import io
import logging
import os
import random
import time
from pathlib import Path
from typing import Optional

from .models import Chunk, FileLike

logger = logging.getLogger(__name__)


def generate_file_id(file_size: int) -> str:
    """Build a session id from the clock, the file size and a random number.

    Uniqueness is best effort; the id only has to tell concurrent uploads
    apart on the server.
    """
    return str(random.randrange(100_000_000) + int(time.time() * 1000) + file_size)


class FileChunkSource:
    """Reads chunks from a path or from an open binary file object."""

    def __init__(self, file: FileLike):
        """Initialize the chunk source.

        Args:
            file: Path to the file, or a seekable binary file object
        """
        self._path: Optional[Path] = None
        self._handle = None
        if isinstance(file, (str, os.PathLike)):
            self._path = Path(file)
        else:
            self._handle = file

    @property
    def name(self) -> str:
        if self._path is not None:
            return self._path.name
        return Path(getattr(self._handle, "name", "blob")).name

    @property
    def size(self) -> int:
        if self._path is not None:
            return self._path.stat().st_size

        position = self._handle.tell()
        try:
            return self._handle.seek(0, io.SEEK_END)
        finally:
            self._handle.seek(position)

    def read(self, index: int, start: int, end: int) -> Chunk:
        """Read one chunk of the file.

        Args:
            index: Chunk index
            start: Offset of the first byte
            end: Offset one past the last byte

        Returns:
            Chunk holding the payload
        """
        length = end - start
        if self._path is not None:
            with open(self._path, 'rb') as f:
                f.seek(start)
                data = f.read(length)
        else:
            self._handle.seek(start)
            data = self._handle.read(length)

        if len(data) != length:
            raise OSError(f"Expected {length} bytes at offset {start} of {self.name}, got {len(data)}")

        logger.debug(f"Read chunk {index} ({start}-{end}) of {self.name}")
        return Chunk(index=index, start=start, end=end, payload=data)
