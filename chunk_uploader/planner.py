"""
Module for splitting a file into fixed-size chunks.
"""
import math
from typing import Tuple


class ChunkPlanner:
    """Computes the chunk count and the byte range of each chunk."""

    def __init__(self, file_size: int, chunk_bytes: int):
        """Initialize the planner.

        Args:
            file_size: Size of the source file in bytes
            chunk_bytes: Size of every chunk but the last, in bytes
        """
        if chunk_bytes <= 0:
            raise ValueError("chunk_bytes must be positive")
        self.file_size = file_size
        self.chunk_bytes = chunk_bytes
        self.total_chunks = max(1, math.ceil(file_size / chunk_bytes))

    def byte_range(self, index: int) -> Tuple[int, int]:
        """Get the half-open byte range of a chunk.

        Args:
            index: 0-based chunk index

        Returns:
            (start, end) offsets, end clipped to the file size
        """
        if not 0 <= index < self.total_chunks:
            raise IndexError(f"chunk {index} out of range 0..{self.total_chunks - 1}")
        if self.total_chunks == 1:
            return 0, self.file_size

        start = index * self.chunk_bytes
        return start, min(start + self.chunk_bytes, self.file_size)

    def is_last(self, index: int) -> bool:
        return index + 1 == self.total_chunks

    def progress(self, completed: int) -> int:
        """Percentage of chunks completed, halves rounded up."""
        return (200 * completed + self.total_chunks) // (2 * self.total_chunks)
