"""gRPC server implementation for the file service."""

import asyncio
import grpc
from grpc import aio
import logging
from pathlib import Path
from typing import AsyncIterator

from common.config import TransferConfig
from common.constants import FILE_SERVICE_NAME, GRPC_MAX_MESSAGE_BYTES
from common.exceptions import (
    InvalidResumePoint,
    SourceReadError,
    SourceUnavailable,
    StreamAborted
)
from common.protocol import (
    FileMetadataRequest,
    FileMetadataResponse,
    FileRequest
)
from fileserver.chunk_streamer import ChunkStreamer
from fileserver.metadata_resolver import MetadataResolver

logger = logging.getLogger(__name__)


class FileServiceServicer:
    """
    gRPC service implementation serving one source file in chunks.
    """

    def __init__(self, resolver: MetadataResolver, streamer: ChunkStreamer):
        """
        Initialize servicer.

        Args:
            resolver: MetadataResolver for the served file
            streamer: ChunkStreamer for the served file
        """
        self.resolver = resolver
        self.streamer = streamer

    async def GetFileMetadata(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle GetFileMetadata RPC (unary).

        Args:
            request_bytes: Serialized FileMetadataRequest
            context: gRPC context

        Returns:
            Serialized FileMetadataResponse
        """
        FileMetadataRequest.from_json(request_bytes)
        try:
            metadata = self.resolver.resolve()
        except SourceUnavailable as e:
            logger.error(f"Metadata request failed: {e}")
            await context.abort(grpc.StatusCode.FAILED_PRECONDITION, str(e))

        response = FileMetadataResponse(
            total_size=metadata.total_size,
            total_chunks=metadata.total_chunk_count
        )
        return response.to_json()

    async def GetFileStream(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> AsyncIterator[bytes]:
        """
        Handle GetFileStream RPC (server streaming).
        Sends chunks from the requested start chunk until the source is exhausted.

        Args:
            request_bytes: Serialized FileRequest
            context: gRPC context

        Yields:
            Serialized FileChunk messages
        """
        request = FileRequest.from_json(request_bytes)
        sent = 0

        try:
            for chunk in self.streamer.stream(request.start_chunk):
                yield chunk.to_json()
                sent += 1
            logger.info(f"Stream from chunk {request.start_chunk} complete, sent {sent} chunks")

        except InvalidResumePoint as e:
            logger.error(f"Rejected stream request: {e}")
            await context.abort(grpc.StatusCode.OUT_OF_RANGE, str(e))
        except SourceUnavailable as e:
            logger.error(f"Source unavailable: {e}")
            await context.abort(grpc.StatusCode.FAILED_PRECONDITION, str(e))
        except SourceReadError as e:
            logger.error(f"Source read failed after {sent} chunks: {e}")
            await context.abort(grpc.StatusCode.DATA_LOSS, str(e))
        except (GeneratorExit, asyncio.CancelledError):
            aborted = StreamAborted(
                f"Consumer went away after {sent} chunks "
                f"(started at chunk {request.start_chunk})"
            )
            logger.warning(str(aborted))
            raise


def load_server_credentials(config: TransferConfig) -> grpc.ServerCredentials:
    """
    Load TLS server credentials from the configured certificate and key.

    Args:
        config: TransferConfig with tls_cert_path and tls_key_path set

    Returns:
        gRPC server credentials
    """
    certificate = Path(config.tls_cert_path).read_bytes()
    private_key = Path(config.tls_key_path).read_bytes()
    return grpc.ssl_server_credentials(((private_key, certificate),))


def create_server(config: TransferConfig) -> aio.Server:
    """
    Create and configure gRPC server.

    Args:
        config: TransferConfig naming the source file and chunk size

    Returns:
        Configured gRPC server (no port bound yet)
    """
    server = aio.server(options=[
        ('grpc.max_send_message_length', GRPC_MAX_MESSAGE_BYTES),
        ('grpc.max_receive_message_length', GRPC_MAX_MESSAGE_BYTES),
    ])
    servicer = FileServiceServicer(
        MetadataResolver(config.source_path, config.chunk_size),
        ChunkStreamer(config.source_path, config.chunk_size)
    )

    server.add_generic_rpc_handlers((
        grpc.method_handlers_generic_handler(
            FILE_SERVICE_NAME,
            {
                'GetFileMetadata': grpc.unary_unary_rpc_method_handler(
                    servicer.GetFileMetadata,
                    request_deserializer=lambda x: x,
                    response_serializer=lambda x: x,
                ),
                'GetFileStream': grpc.unary_stream_rpc_method_handler(
                    servicer.GetFileStream,
                    request_deserializer=lambda x: x,
                    response_serializer=lambda x: x,
                ),
            }
        ),
    ))

    return server


def bind_port(server: aio.Server, config: TransferConfig, host: str = '[::]') -> int:
    """
    Bind the server to the configured port, with TLS when configured.

    Args:
        server: Server returned by create_server
        config: TransferConfig with server_port and optional TLS paths
        host: Listen host

    Returns:
        The bound port (useful when server_port is 0)
    """
    listen_addr = f'{host}:{config.server_port}'
    if config.tls_enabled:
        return server.add_secure_port(listen_addr, load_server_credentials(config))
    return server.add_insecure_port(listen_addr)
