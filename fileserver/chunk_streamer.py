"""Reads the source file from a resume point and emits checksummed chunks."""

import logging
import os
from typing import BinaryIO, Iterator

from common.checksum import compute_checksum
from common.exceptions import InvalidResumePoint, SourceReadError, SourceUnavailable
from common.protocol import FileChunk
from common.types import chunk_count_for

logger = logging.getLogger(__name__)


class ChunkStreamer:
    """
    Produces the ordered chunk sequence for one GetFileStream call.
    """

    def __init__(self, source_path: str, chunk_size: int):
        """
        Initialize streamer.

        Args:
            source_path: Path of the file being served
            chunk_size: Fixed chunk size in bytes
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.source_path = source_path
        self.chunk_size = chunk_size

    def stream(self, start_chunk_index: int) -> Iterator[FileChunk]:
        """
        Open the source, seek to the start chunk and return a lazy chunk iterator.

        Opening and seeking happen eagerly so setup errors surface before
        the first chunk is requested.

        Args:
            start_chunk_index: 0-based index of the first chunk to emit

        Returns:
            Iterator yielding FileChunk values with consecutive sequence numbers

        Raises:
            SourceUnavailable: If the source cannot be opened
            InvalidResumePoint: If the start offset lies past the end of the source
        """
        if start_chunk_index < 0:
            raise InvalidResumePoint(f"Negative start chunk {start_chunk_index}")

        try:
            source = open(self.source_path, 'rb')
        except OSError as e:
            raise SourceUnavailable(f"Cannot open source {self.source_path}: {e}") from e

        try:
            total_size = os.fstat(source.fileno()).st_size
            offset = start_chunk_index * self.chunk_size
            if offset > total_size:
                raise InvalidResumePoint(
                    f"Start chunk {start_chunk_index} (offset {offset}) is past "
                    f"the end of {self.source_path} ({total_size} bytes)"
                )
            source.seek(offset)
        except InvalidResumePoint:
            source.close()
            raise
        except OSError as e:
            source.close()
            raise SourceUnavailable(f"Cannot seek source {self.source_path}: {e}") from e

        logger.info(
            f"Streaming {self.source_path} from chunk {start_chunk_index} "
            f"(offset {offset}, size {total_size})"
        )
        return self._read_chunks(source, start_chunk_index, total_size)

    def _read_chunks(
        self,
        source: BinaryIO,
        start_chunk_index: int,
        total_size: int
    ) -> Iterator[FileChunk]:
        """Yield chunks until EOF; always closes the source."""
        total_chunks = chunk_count_for(total_size, self.chunk_size)
        sequence_number = start_chunk_index
        try:
            while True:
                try:
                    data = source.read(self.chunk_size)
                except OSError as e:
                    raise SourceReadError(
                        f"Read failed at chunk {sequence_number}: {e}"
                    ) from e

                if not data:
                    return

                yield FileChunk(
                    sequence_number=sequence_number,
                    chunk_data=data,
                    checksum=compute_checksum(data),
                    total_size=total_size,
                    total_chunks=total_chunks
                )
                sequence_number += 1
        finally:
            source.close()
