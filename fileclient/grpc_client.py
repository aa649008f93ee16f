"""RPC client for fetching file metadata and chunk streams from the file server."""

import grpc
import logging
from pathlib import Path
from typing import AsyncIterator, Type

from common.config import TransferConfig
from common.constants import (
    FILE_SERVICE_NAME,
    GRPC_KEEPALIVE_TIME_MS,
    GRPC_KEEPALIVE_TIMEOUT_MS,
    GRPC_MAX_MESSAGE_BYTES
)
from common.exceptions import (
    InvalidResumePoint,
    SourceReadError,
    SourceUnavailable,
    StreamAborted,
    TransferError
)
from common.protocol import (
    FileChunk,
    FileMetadataRequest,
    FileMetadataResponse,
    FileRequest
)
from common.types import FileMetadata

logger = logging.getLogger(__name__)

STATUS_ERRORS = {
    grpc.StatusCode.FAILED_PRECONDITION: SourceUnavailable,
    grpc.StatusCode.OUT_OF_RANGE: InvalidResumePoint,
    grpc.StatusCode.DATA_LOSS: SourceReadError,
}


def translate_rpc_error(
    error: grpc.RpcError,
    default: Type[TransferError] = StreamAborted
) -> TransferError:
    """
    Map a gRPC failure onto the transfer error taxonomy.

    Args:
        error: Error raised by a gRPC call
        default: Error type for status codes with no specific mapping

    Returns:
        TransferError instance (not raised)
    """
    code = error.code() if hasattr(error, 'code') else None
    details = error.details() if hasattr(error, 'details') else str(error)
    error_cls = STATUS_ERRORS.get(code, default)
    return error_cls(f"{details} (status={code.name if code else 'UNKNOWN'})")


class FileServiceClient:
    """
    gRPC client for the file service.
    Handles connection management and RPC calls.
    """

    def __init__(self, config: TransferConfig):
        """
        Initialize client with lazy connection.

        Args:
            config: TransferConfig with server address, chunk size and TLS settings
        """
        self.config = config
        self._channel = None
        self._target = config.server_address

    def _ensure_channel(self) -> grpc.aio.Channel:
        """Ensure gRPC channel is established."""
        if self._channel is None:
            options = [
                ('grpc.keepalive_time_ms', GRPC_KEEPALIVE_TIME_MS),
                ('grpc.keepalive_timeout_ms', GRPC_KEEPALIVE_TIMEOUT_MS),
                ('grpc.keepalive_permit_without_calls', 1),
                ('grpc.max_receive_message_length', GRPC_MAX_MESSAGE_BYTES),
            ]
            if self.config.tls_enabled:
                root_certificates = Path(self.config.tls_cert_path).read_bytes()
                credentials = grpc.ssl_channel_credentials(root_certificates=root_certificates)
                self._channel = grpc.aio.secure_channel(self._target, credentials, options=options)
            else:
                self._channel = grpc.aio.insecure_channel(self._target, options=options)
            logger.info(f"Established gRPC channel to {self._target}")
        return self._channel

    async def close(self):
        """Close gRPC channel."""
        if self._channel:
            await self._channel.close()
            self._channel = None

    async def get_file_metadata(self) -> FileMetadata:
        """
        Fetch size and chunk count of the served file.

        Returns:
            FileMetadata using the locally configured chunk size

        Raises:
            SourceUnavailable: If the server cannot be reached or cannot stat its source
        """
        channel = self._ensure_channel()
        multi_callable = channel.unary_unary(
            f'/{FILE_SERVICE_NAME}/GetFileMetadata',
            request_serializer=lambda x: x,
            response_deserializer=lambda x: x,
        )

        try:
            response_bytes = await multi_callable(FileMetadataRequest().to_json())
        except grpc.RpcError as e:
            logger.error(f"GetFileMetadata failed: {e}")
            raise translate_rpc_error(e, default=SourceUnavailable) from e

        response = FileMetadataResponse.from_json(response_bytes)
        metadata = FileMetadata(
            total_size=response.total_size,
            chunk_size=self.config.chunk_size,
            total_chunk_count=response.total_chunks
        )
        expected = FileMetadata.for_size(response.total_size, self.config.chunk_size)
        if expected.total_chunk_count != metadata.total_chunk_count:
            raise SourceUnavailable(
                f"Server reports {response.total_chunks} chunks for {response.total_size} bytes; "
                f"local chunk size {self.config.chunk_size} implies {expected.total_chunk_count}"
            )
        return metadata

    async def get_file_stream(self, start_chunk: int) -> AsyncIterator[FileChunk]:
        """
        Stream chunks starting at start_chunk.

        Args:
            start_chunk: Index of the first chunk to request

        Yields:
            FileChunk messages in server order

        Raises:
            InvalidResumePoint: If the server rejects the start chunk
            SourceUnavailable: If the server cannot open its source
            SourceReadError: If the server failed reading mid-stream
            StreamAborted: On any other transport failure or malformed message
        """
        channel = self._ensure_channel()
        multi_callable = channel.unary_stream(
            f'/{FILE_SERVICE_NAME}/GetFileStream',
            request_serializer=lambda x: x,
            response_deserializer=lambda x: x,
        )

        call = multi_callable(FileRequest(start_chunk=start_chunk).to_json())
        try:
            async for response_bytes in call:
                if not isinstance(response_bytes, bytes):
                    response_bytes = bytes(response_bytes)
                try:
                    chunk = FileChunk.from_json(response_bytes)
                except (ValueError, KeyError, TypeError) as e:
                    raise StreamAborted(f"Malformed chunk message: {e}") from e
                yield chunk
        except grpc.RpcError as e:
            raise translate_rpc_error(e) from e
        finally:
            call.cancel()
