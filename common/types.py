"""Shared data type definitions (FileMetadata and chunk arithmetic)."""

from dataclasses import dataclass


def chunk_count_for(total_size: int, chunk_size: int) -> int:
    """
    Number of chunks needed to cover total_size bytes.

    Args:
        total_size: Source size in bytes
        chunk_size: Fixed chunk size in bytes

    Returns:
        ceil(total_size / chunk_size)
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return (total_size + chunk_size - 1) // chunk_size


@dataclass(frozen=True)
class FileMetadata:
    """
    Size information for one transfer session, computed once from the source.
    """
    total_size: int
    chunk_size: int
    total_chunk_count: int

    @classmethod
    def for_size(cls, total_size: int, chunk_size: int) -> 'FileMetadata':
        return cls(
            total_size=total_size,
            chunk_size=chunk_size,
            total_chunk_count=chunk_count_for(total_size, chunk_size)
        )

    def chunk_length(self, sequence_number: int) -> int:
        """
        Expected payload length for a chunk.

        Raises:
            IndexError: If sequence_number is outside the file
        """
        if sequence_number < 0 or sequence_number >= self.total_chunk_count:
            raise IndexError(
                f"Chunk {sequence_number} outside 0..{self.total_chunk_count - 1}"
            )
        if sequence_number == self.total_chunk_count - 1:
            return self.total_size - sequence_number * self.chunk_size
        return self.chunk_size
