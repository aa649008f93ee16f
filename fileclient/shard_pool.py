"""Fixed set of independently locked write handles onto one destination file."""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import List

from common.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


@dataclass
class WriteShard:
    """
    One read/write descriptor onto the destination and the lock guarding it.
    """
    shard_index: int
    fd: int
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class WriteShardPool:
    """
    N descriptors onto the same path. Writes use positional I/O so no
    descriptor cursor is shared; chunks map to shards by sequence number.
    """

    def __init__(self, path: str, shard_count: int):
        """
        Initialize an unopened pool.

        Args:
            path: Destination file path
            shard_count: Number of descriptors to open
        """
        if shard_count <= 0:
            raise ValueError(f"shard_count must be positive, got {shard_count}")
        self.path = path
        self.shard_count = shard_count
        self._shards: List[WriteShard] = []

    @property
    def is_open(self) -> bool:
        return bool(self._shards)

    def open(self) -> 'WriteShardPool':
        """
        Open every shard, creating the destination if absent.

        Returns:
            self, for chaining

        Raises:
            StorageUnavailable: If any descriptor fails to open; those
                already opened are closed first
        """
        if self.is_open:
            raise RuntimeError(f"Shard pool for {self.path} is already open")

        for shard_index in range(self.shard_count):
            try:
                fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
            except OSError as e:
                logger.error(f"Failed to open shard {shard_index} on {self.path}: {e}")
                self.close_all()
                raise StorageUnavailable(f"Cannot open {self.path} for writing: {e}") from e
            self._shards.append(WriteShard(shard_index=shard_index, fd=fd))

        logger.debug(f"Opened {self.shard_count} shards on {self.path}")
        return self

    def shard_for(self, sequence_number: int) -> int:
        """Shard index responsible for a chunk."""
        return sequence_number % self.shard_count

    async def write_at(self, shard_index: int, offset: int, data: bytes) -> int:
        """
        Write data at an exact offset through one shard.

        Writes on the same shard are serialized by its lock; different
        shards proceed concurrently.

        Args:
            shard_index: Shard to write through
            offset: Absolute byte offset in the destination
            data: Bytes to write

        Returns:
            Number of bytes written

        Raises:
            StorageUnavailable: If the write fails
        """
        if not self.is_open:
            raise RuntimeError(f"Shard pool for {self.path} is not open")
        shard = self._shards[shard_index]

        async with shard.lock:
            try:
                return await asyncio.to_thread(_pwrite_all, shard.fd, data, offset)
            except OSError as e:
                logger.error(
                    f"Write of {len(data)} bytes at offset {offset} "
                    f"(shard {shard_index}) failed: {e}"
                )
                raise StorageUnavailable(f"Write to {self.path} failed at offset {offset}: {e}") from e

    def close_all(self) -> None:
        """Close every opened descriptor. Safe to call more than once."""
        shards, self._shards = self._shards, []
        for shard in shards:
            try:
                os.close(shard.fd)
            except OSError as e:
                logger.warning(f"Error closing shard {shard.shard_index} on {self.path}: {e}")

    async def __aenter__(self) -> 'WriteShardPool':
        return self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close_all()


def _pwrite_all(fd: int, data: bytes, offset: int) -> int:
    """pwrite until every byte is written (pwrite may write short)."""
    view = memoryview(data)
    written = 0
    while written < len(view):
        n = os.pwrite(fd, view[written:], offset + written)
        if n == 0:
            raise OSError(f"pwrite wrote 0 bytes at offset {offset + written}")
        written += n
    return written
