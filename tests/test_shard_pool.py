"""Unit tests for WriteShardPool."""

import asyncio
import os
import random
import threading
import time

import pytest

from common.exceptions import StorageUnavailable
from fileclient import shard_pool
from fileclient.shard_pool import WriteShardPool


class TestPoolLifecycle:
    """Test opening and closing shard descriptors."""

    def test_open_creates_destination(self, destination):
        pool = WriteShardPool(str(destination), 4).open()
        try:
            assert destination.exists()
            assert pool.is_open
        finally:
            pool.close_all()

    def test_open_keeps_existing_content(self, destination):
        destination.write_bytes(b'existing')

        pool = WriteShardPool(str(destination), 2).open()
        pool.close_all()

        assert destination.read_bytes() == b'existing'

    def test_close_all_is_idempotent(self, destination):
        pool = WriteShardPool(str(destination), 3).open()

        pool.close_all()
        pool.close_all()

        assert not pool.is_open

    def test_unwritable_path_raises(self, tmp_path):
        pool = WriteShardPool(str(tmp_path / 'missing-dir' / 'out.bin'), 4)

        with pytest.raises(StorageUnavailable):
            pool.open()
        assert not pool.is_open

    def test_partial_open_releases_opened_handles(self, destination, monkeypatch):
        real_open = os.open
        real_close = os.close
        opened, closed = [], []

        def flaky_open(path, flags, mode=0o777):
            if len(opened) == 2:
                raise OSError("Too many open files")
            fd = real_open(path, flags, mode)
            opened.append(fd)
            return fd

        def tracking_close(fd):
            closed.append(fd)
            real_close(fd)

        monkeypatch.setattr(shard_pool.os, "open", flaky_open)
        monkeypatch.setattr(shard_pool.os, "close", tracking_close)

        with pytest.raises(StorageUnavailable):
            WriteShardPool(str(destination), 4).open()

        assert sorted(closed) == sorted(opened)

    def test_rejects_zero_shards(self, destination):
        with pytest.raises(ValueError):
            WriteShardPool(str(destination), 0)

    def test_shard_selection_is_modulo(self, destination):
        pool = WriteShardPool(str(destination), 4)

        assert [pool.shard_for(n) for n in range(9)] == [0, 1, 2, 3, 0, 1, 2, 3, 0]


class TestPositionalWrites:
    """Test exact-offset writes and shard isolation."""

    @pytest.mark.asyncio
    async def test_write_at_exact_offset(self, destination):
        async with WriteShardPool(str(destination), 2) as pool:
            await pool.write_at(1, 10, b'abc')
            await pool.write_at(0, 0, b'xy')

        data = destination.read_bytes()
        assert len(data) == 13
        assert data[:2] == b'xy'
        assert data[10:13] == b'abc'
        assert data[2:10] == b'\x00' * 8

    @pytest.mark.asyncio
    async def test_write_on_closed_pool_raises(self, destination):
        pool = WriteShardPool(str(destination), 2)

        with pytest.raises(RuntimeError):
            await pool.write_at(0, 0, b'data')

    @pytest.mark.asyncio
    async def test_concurrent_writes_on_different_shards_do_not_overlap(self, destination):
        chunk_size = 512
        count = 64
        blocks = {n: bytes([n % 251]) * chunk_size for n in range(count)}
        order = list(range(count))
        random.shuffle(order)

        async with WriteShardPool(str(destination), 4) as pool:
            await asyncio.gather(*(
                pool.write_at(pool.shard_for(n), n * chunk_size, blocks[n]) for n in order
            ))

        expected = b''.join(blocks[n] for n in range(count))
        assert destination.read_bytes() == expected

    @pytest.mark.asyncio
    async def test_same_shard_writes_are_serialized(self, destination, monkeypatch):
        real_pwrite_all = shard_pool._pwrite_all
        guard = threading.Lock()
        active = {}
        peak = {}

        def slow_pwrite_all(fd, data, offset):
            with guard:
                active[fd] = active.get(fd, 0) + 1
                peak[fd] = max(peak.get(fd, 0), active[fd])
            time.sleep(0.01)
            try:
                return real_pwrite_all(fd, data, offset)
            finally:
                with guard:
                    active[fd] -= 1

        monkeypatch.setattr(shard_pool, "_pwrite_all", slow_pwrite_all)

        async with WriteShardPool(str(destination), 2) as pool:
            await asyncio.gather(*(
                pool.write_at(pool.shard_for(n), n * 16, b'z' * 16) for n in range(12)
            ))

        assert len(peak) == 2
        assert all(p == 1 for p in peak.values())
        assert destination.read_bytes() == b'z' * 16 * 12
