"""Entry point for the file server.
Serves the configured source file over the FileService RPC surface.
"""

import asyncio
import signal
import sys

from common.config import TransferConfig
from common.logging_config import setup_logging
from fileserver.grpc_server import create_server, bind_port
from fileserver.metadata_resolver import MetadataResolver

logger = setup_logging('fileserver')


async def serve(config: TransferConfig) -> None:
    """
    Start and run gRPC server.

    Args:
        config: Loaded TransferConfig
    """
    server = create_server(config)
    port = bind_port(server, config)

    logger.info(
        f"Starting file server on port {port} "
        f"({'TLS' if config.tls_enabled else 'insecure'}), serving {config.source_path}"
    )
    await server.start()

    async def shutdown(sig=None):
        if sig:
            logger.info(f"Received signal {sig}, shutting down...")
        else:
            logger.info("Shutting down...")
        await server.stop(5)
        logger.info("File server stopped")

    if sys.platform != 'win32':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s)))

    try:
        await server.wait_for_termination()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        await shutdown()


def main() -> None:
    """Bootstrap file server."""
    config = TransferConfig.from_env()

    metadata = MetadataResolver(config.source_path, config.chunk_size).resolve()
    logger.info(
        f"Source {config.source_path}: {metadata.total_size} bytes, "
        f"{metadata.total_chunk_count} chunks of {config.chunk_size} bytes"
    )

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("File server shutdown complete")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
