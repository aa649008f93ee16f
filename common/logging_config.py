import logging
import os
import sys
from typing import Optional


DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _build_formatter(transfer_id: Optional[str] = None) -> logging.Formatter:
    """Build the shared log formatter, optionally tagged with a transfer id."""
    if transfer_id:
        return logging.Formatter(
            f'%(asctime)s - %(name)s - %(levelname)s - [{transfer_id}] - %(message)s',
            datefmt=DATE_FORMAT
        )
    return logging.Formatter(DEFAULT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    transfer_id: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Args:
        component_name: Name of the component (e.g., 'fileserver', 'fileclient')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO
        transfer_id: Optional transfer ID to include in log format

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_build_formatter(transfer_id))

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str, transfer_id: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)
        transfer_id: Optional transfer ID to tag the logger's handlers with

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if transfer_id:
        for handler in logger.handlers:
            if isinstance(handler, logging.StreamHandler):
                handler.setFormatter(_build_formatter(transfer_id))

    return logger
