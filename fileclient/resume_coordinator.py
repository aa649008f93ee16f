"""
Resume Coordinator

Drives a transfer through IDLE -> STREAMING -> (DONE | RETRY_WAIT -> STREAMING).

Each attempt opens the shard pool, requests the stream from the resume
point, reads it one chunk at a time and hands every chunk to a write task.
At most max_inflight_writes tasks run at once; the read loop waits for a
free slot before dispatching the next one. All write tasks of an attempt
are joined before the pool is closed, on success and on failure.

Resume point contract: a chunk is confirmed only once its write has
completed AND every earlier chunk is confirmed. The counter is the length
of the contiguous durably-written prefix, never the count of chunks
received, so a rejected or unfinished chunk is always re-fetched.
"""

import asyncio
import logging
import os
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Set

from common.config import TransferConfig
from common.constants import PROGRESS_REPORT_PERCENT_STEP
from common.exceptions import (
    FatalTransferError,
    RetryableTransferError,
    StorageUnavailable,
    StreamAborted,
    TransferError
)
from common.protocol import FileChunk
from common.types import FileMetadata
from fileclient.chunk_applier import ChunkApplier
from fileclient.shard_pool import WriteShardPool

logger = logging.getLogger(__name__)


class TransferPhase(str, Enum):
    IDLE = 'idle'
    STREAMING = 'streaming'
    RETRY_WAIT = 'retry_wait'
    DONE = 'done'
    FAILED = 'failed'


@dataclass
class TransferState:
    """
    Process-local progress of one transfer. Only confirmed_chunk_count
    carries over between attempts.
    """
    confirmed_chunk_count: int = 0
    phase: TransferPhase = TransferPhase.IDLE
    attempts: int = 0
    last_error: Optional[str] = None
    _written_ahead: Set[int] = field(default_factory=set, repr=False)

    def confirm(self, sequence_number: int) -> None:
        """
        Record a completed write and extend the contiguous prefix.

        Args:
            sequence_number: Chunk whose write finished
        """
        if sequence_number < self.confirmed_chunk_count:
            return
        self._written_ahead.add(sequence_number)
        while self.confirmed_chunk_count in self._written_ahead:
            self._written_ahead.remove(self.confirmed_chunk_count)
            self.confirmed_chunk_count += 1

    def end_attempt(self) -> None:
        """Drop writes past a gap; they are re-fetched from the resume point."""
        self._written_ahead.clear()


ProgressCallback = Callable[[int, int], None]


class ResumeCoordinator:
    """
    Owns TransferState and the shard pool lifetime for one transfer.
    Retries stream, read and checksum failures indefinitely with a fixed delay.
    """

    def __init__(
        self,
        client,
        config: TransferConfig,
        progress_callback: Optional[ProgressCallback] = None,
        sleep=asyncio.sleep
    ):
        """
        Initialize coordinator.

        Args:
            client: Object providing async get_file_metadata() and
                get_file_stream(start_chunk) (e.g. FileServiceClient)
            config: TransferConfig (destination, chunk size, shards, retry delay)
            progress_callback: Optional callable(confirmed, total) invoked on progress
            sleep: Coroutine function used for the retry delay
        """
        self.client = client
        self.config = config
        self.progress_callback = progress_callback
        self._sleep = sleep
        self.state = TransferState()
        self.metadata: Optional[FileMetadata] = None
        self._last_percent = 0
        self._size_change_warned = False
        self._inflight_writes: Set[asyncio.Task] = set()

    async def run(self) -> TransferState:
        """
        Run the transfer to completion.

        Returns:
            Final TransferState (phase DONE)

        Raises:
            SourceUnavailable: If metadata cannot be fetched or the server loses its source
            StorageUnavailable: If the destination cannot be opened or written
            InvalidResumePoint: If the server rejects the resume point
        """
        try:
            self.metadata = await self.client.get_file_metadata()
        except FatalTransferError as e:
            self._fail(e)
            raise

        logger.info(
            f"Starting transfer to {self.config.destination_path}: "
            f"{self.metadata.total_size / (1024 * 1024):.2f} MB, "
            f"{self.metadata.total_chunk_count} chunks"
        )

        while True:
            self.state.phase = TransferPhase.STREAMING
            self.state.attempts += 1
            start = self.state.confirmed_chunk_count

            try:
                await self._run_attempt(start)
            except RetryableTransferError as e:
                reason = f"{type(e).__name__}: {e}"
            except FatalTransferError as e:
                self._fail(e)
                raise
            else:
                if self.state.confirmed_chunk_count == self.metadata.total_chunk_count:
                    self._finish()
                    return self.state
                reason = (
                    f"stream ended at chunk {self.state.confirmed_chunk_count} "
                    f"of {self.metadata.total_chunk_count}"
                )
            finally:
                self.state.end_attempt()

            self.state.phase = TransferPhase.RETRY_WAIT
            self.state.last_error = reason
            logger.warning(
                f"Attempt {self.state.attempts} failed ({reason}); "
                f"resuming from chunk {self.state.confirmed_chunk_count} "
                f"in {self.config.retry_delay}s"
            )
            await self._sleep(self.config.retry_delay)

    async def _run_attempt(self, start: int) -> None:
        """
        One STREAMING pass: stream from start, apply chunks, join all writes.

        Raises:
            TransferError: The first failure of the attempt, fatal errors first
        """
        pool = WriteShardPool(self.config.destination_path, self.config.shard_count)
        pool.open()
        applier = ChunkApplier(pool, self.config.chunk_size)
        slots = asyncio.Semaphore(self.config.max_inflight_writes)
        write_errors = []
        stream_error: Optional[TransferError] = None

        logger.info(f"Requesting stream from chunk {start}")

        try:
            expected = start
            async with aclosing(self.client.get_file_stream(start)) as stream:
                async for chunk in stream:
                    if write_errors:
                        break
                    self._check_order(chunk, expected)
                    expected += 1

                    await slots.acquire()
                    task = asyncio.create_task(self._apply(applier, chunk, slots, write_errors))
                    self._inflight_writes.add(task)
                    task.add_done_callback(self._inflight_writes.discard)
        except TransferError as e:
            stream_error = e
        finally:
            if self._inflight_writes:
                await asyncio.gather(*self._inflight_writes, return_exceptions=True)
            pool.close_all()

        for error in write_errors:
            if isinstance(error, FatalTransferError):
                raise error
        if stream_error is not None:
            raise stream_error
        if write_errors:
            raise write_errors[0]

    def _check_order(self, chunk: FileChunk, expected: int) -> None:
        """Enforce consecutive sequence numbers within the file's chunk range; warn once if the source size moved."""
        if chunk.total_size != self.metadata.total_size and not self._size_change_warned:
            self._size_change_warned = True
            logger.warning(
                f"Source size changed since metadata was fetched: "
                f"{self.metadata.total_size} -> {chunk.total_size} bytes"
            )
        if chunk.sequence_number != expected:
            raise StreamAborted(
                f"Out-of-order chunk: expected {expected}, got {chunk.sequence_number}"
            )
        if chunk.sequence_number >= self.metadata.total_chunk_count:
            raise StreamAborted(
                f"Chunk {chunk.sequence_number} is past the expected "
                f"{self.metadata.total_chunk_count} chunks"
            )
        expected_length = self.metadata.chunk_length(chunk.sequence_number)
        if len(chunk.chunk_data) != expected_length:
            raise StreamAborted(
                f"Chunk {chunk.sequence_number} has {len(chunk.chunk_data)} bytes, "
                f"expected {expected_length}"
            )
        if chunk.total_chunks != self.metadata.total_chunk_count:
            logger.warning(
                f"Chunk {chunk.sequence_number} reports {chunk.total_chunks} total chunks, "
                f"expected {self.metadata.total_chunk_count}"
            )

    async def _apply(
        self,
        applier: ChunkApplier,
        chunk: FileChunk,
        slots: asyncio.Semaphore,
        write_errors: list
    ) -> None:
        """Write task: apply one chunk, then confirm it or record the failure in write_errors."""
        try:
            await applier.apply(chunk)
        except TransferError as e:
            write_errors.append(e)
        except Exception as e:
            logger.error(f"Unexpected error applying chunk {chunk.sequence_number}: {e}", exc_info=True)
            error = StorageUnavailable(f"Unexpected error applying chunk {chunk.sequence_number}: {e}")
            write_errors.append(error)
        else:
            self.state.confirm(chunk.sequence_number)
            self._report_progress()
        finally:
            slots.release()

    def _report_progress(self) -> None:
        confirmed = self.state.confirmed_chunk_count
        total = self.metadata.total_chunk_count
        if self.progress_callback:
            self.progress_callback(confirmed, total)

        percent = int(confirmed * 100 / total) if total else 100
        if percent >= self._last_percent + PROGRESS_REPORT_PERCENT_STEP:
            self._last_percent = percent - percent % PROGRESS_REPORT_PERCENT_STEP
            logger.info(f"Downloading... {self._last_percent}% complete ({confirmed}/{total} chunks)")

    def _finish(self) -> None:
        """Trim the destination to the source size and mark the transfer DONE."""
        try:
            os.truncate(self.config.destination_path, self.metadata.total_size)
        except OSError as e:
            error = StorageUnavailable(f"Cannot truncate {self.config.destination_path}: {e}")
            self._fail(error)
            raise error from e

        self.state.phase = TransferPhase.DONE
        self.state.last_error = None
        logger.info(
            f"File download complete: {self.metadata.total_chunk_count} chunks "
            f"in {self.state.attempts} attempt(s)"
        )

    def _fail(self, error: TransferError) -> None:
        self.state.phase = TransferPhase.FAILED
        self.state.last_error = f"{type(error).__name__}: {error}"
        logger.error(f"Transfer failed: {self.state.last_error}")
