"""Verifies received chunks and writes them to their offset in the destination."""

import logging
from typing import Tuple

from common.checksum import compute_checksum, verify_checksum
from common.exceptions import ChecksumMismatch
from common.protocol import FileChunk
from fileclient.shard_pool import WriteShardPool

logger = logging.getLogger(__name__)


class ChunkApplier:
    """
    Applies one chunk at a time to a WriteShardPool.
    Each apply call may run concurrently with others.
    """

    def __init__(self, pool: WriteShardPool, chunk_size: int):
        """
        Initialize applier.

        Args:
            pool: Open WriteShardPool for the current attempt
            chunk_size: Fixed chunk size in bytes, as configured on the server
        """
        self.pool = pool
        self.chunk_size = chunk_size

    def verify(self, chunk: FileChunk) -> None:
        """
        Check a chunk's payload against its checksum.

        Raises:
            ChecksumMismatch: If the SHA-256 of the payload differs
        """
        if not verify_checksum(chunk.chunk_data, chunk.checksum):
            logger.error(f"Checksum mismatch on chunk {chunk.sequence_number}, rejecting")
            raise ChecksumMismatch(
                chunk.sequence_number, chunk.checksum, compute_checksum(chunk.chunk_data)
            )

    async def apply(self, chunk: FileChunk) -> Tuple[int, int]:
        """
        Verify a chunk, then write it at sequence_number * chunk_size.

        Args:
            chunk: Received chunk

        Returns:
            Tuple of (offset, length) of the written byte range

        Raises:
            ChecksumMismatch: If verification fails; nothing is written
            StorageUnavailable: If the write fails
        """
        self.verify(chunk)

        offset = chunk.sequence_number * self.chunk_size
        shard_index = self.pool.shard_for(chunk.sequence_number)
        written = await self.pool.write_at(shard_index, offset, chunk.chunk_data)

        logger.debug(
            f"Wrote chunk {chunk.sequence_number}: {written} bytes at {offset} via shard {shard_index}"
        )
        return offset, written
