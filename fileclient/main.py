"""Entry point for the file client.
Downloads the served file to the configured destination, resuming after failures.
"""

import asyncio
import os
import sys
import uuid

from common.checksum import compute_file_checksum
from common.config import TransferConfig
from common.exceptions import FatalTransferError
from common.logging_config import get_logger, setup_logging
from fileclient.grpc_client import FileServiceClient
from fileclient.resume_coordinator import ResumeCoordinator, TransferState


async def run_transfer(config: TransferConfig) -> TransferState:
    """
    Run one transfer against the configured server.

    Args:
        config: Loaded TransferConfig

    Returns:
        Final TransferState

    Raises:
        FatalTransferError: If the transfer cannot complete
    """
    client = FileServiceClient(config)
    try:
        coordinator = ResumeCoordinator(client, config)
        return await coordinator.run()
    finally:
        await client.close()


def main() -> None:
    """Entry point for the file client."""
    log_level = 'DEBUG' if '--debug' in sys.argv else os.getenv('LOG_LEVEL', 'INFO')
    transfer_id = uuid.uuid4().hex[:8]
    setup_logging('fileclient', log_level=log_level)
    logger = get_logger('fileclient', transfer_id=transfer_id)

    if '--debug' in sys.argv:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    config = TransferConfig.from_env()
    logger.info(f"Downloading from {config.server_address} to {config.destination_path}")

    try:
        state = asyncio.run(run_transfer(config))
    except FatalTransferError as e:
        logger.error(f"Transfer failed: {type(e).__name__}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)

    checksum = compute_file_checksum(config.destination_path)
    logger.info(
        f"Transfer complete after {state.attempts} attempt(s); "
        f"{config.destination_path} sha256={checksum}"
    )


if __name__ == "__main__":
    main()
