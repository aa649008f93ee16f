"""Shared pytest fixtures for all tests."""

import asyncio
import os
from dataclasses import replace

import pytest

from common.config import TransferConfig
from common.exceptions import StreamAborted
from fileserver.chunk_streamer import ChunkStreamer
from fileserver.metadata_resolver import MetadataResolver


CHUNK_SIZE = 1024


class InProcessChunkSource:
    """
    Serves a file through ChunkStreamer without gRPC, with injectable faults.

    Attempts are numbered from 0 in the order get_file_stream is called.

    Args:
        source_path: File to serve
        chunk_size: Chunk size in bytes
        fail_at: attempt -> sequence number at which the stream aborts
            (chunks before it are delivered)
        corrupt: attempt -> sequence numbers whose payload is altered in transit
    """

    def __init__(self, source_path, chunk_size, fail_at=None, corrupt=None):
        self.resolver = MetadataResolver(str(source_path), chunk_size)
        self.streamer = ChunkStreamer(str(source_path), chunk_size)
        self.fail_at = fail_at or {}
        self.corrupt = corrupt or {}
        self.requests = []

    async def get_file_metadata(self):
        return self.resolver.resolve()

    async def get_file_stream(self, start_chunk):
        attempt = len(self.requests)
        self.requests.append(start_chunk)
        fail_at = self.fail_at.get(attempt)
        corrupt = self.corrupt.get(attempt, set())

        for chunk in self.streamer.stream(start_chunk):
            if fail_at is not None and chunk.sequence_number >= fail_at:
                raise StreamAborted(f"connection reset before chunk {chunk.sequence_number}")
            if chunk.sequence_number in corrupt:
                altered = bytes([chunk.chunk_data[0] ^ 0xFF]) + chunk.chunk_data[1:]
                chunk = replace(chunk, chunk_data=altered)
            yield chunk
            await asyncio.sleep(0)


@pytest.fixture
def make_source(tmp_path):
    """
    Factory creating a source file of the given size with random content.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Callable(size, name='source.bin') -> Path
    """
    def _make(size, name='source.bin'):
        path = tmp_path / name
        path.write_bytes(os.urandom(size))
        return path
    return _make


@pytest.fixture
def destination(tmp_path):
    """Path for the downloaded file (not created)."""
    return tmp_path / 'downloaded.bin'


@pytest.fixture
def make_config(destination):
    """
    Factory for a TransferConfig with small chunks and no retry delay.

    Returns:
        Callable(**overrides) -> TransferConfig
    """
    def _make(**overrides):
        values = {
            'chunk_size': CHUNK_SIZE,
            'shard_count': 4,
            'retry_delay': 0,
            'max_inflight_writes': 8,
            'destination_path': str(destination),
        }
        values.update(overrides)
        return TransferConfig(**values)
    return _make


@pytest.fixture
def recorded_sleeps():
    """
    Sleep replacement that records requested delays instead of waiting.

    Returns:
        Tuple of (delays list, async sleep function)
    """
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)
        await asyncio.sleep(0)

    return delays, _sleep


@pytest.fixture
def make_chunk_source():
    """
    Factory for InProcessChunkSource instances.

    Returns:
        Callable(source_path, chunk_size=CHUNK_SIZE, fail_at=None, corrupt=None)
    """
    def _make(source_path, chunk_size=CHUNK_SIZE, fail_at=None, corrupt=None):
        return InProcessChunkSource(source_path, chunk_size, fail_at=fail_at, corrupt=corrupt)
    return _make
