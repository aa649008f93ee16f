"""Reports total size and chunk count of the source file."""

import logging
import os
import stat

from common.exceptions import SourceUnavailable
from common.types import FileMetadata

logger = logging.getLogger(__name__)


class MetadataResolver:
    """
    Stats the configured source file and derives its FileMetadata.
    """

    def __init__(self, source_path: str, chunk_size: int):
        """
        Initialize resolver.

        Args:
            source_path: Path of the file being served
            chunk_size: Fixed chunk size in bytes
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.source_path = source_path
        self.chunk_size = chunk_size

    def resolve(self) -> FileMetadata:
        """
        Compute metadata from the source's current size.

        Returns:
            FileMetadata for the source

        Raises:
            SourceUnavailable: If the source cannot be statted or is not a regular file
        """
        try:
            st = os.stat(self.source_path)
        except OSError as e:
            logger.error(f"Cannot stat source {self.source_path}: {e}")
            raise SourceUnavailable(f"Cannot stat source {self.source_path}: {e}") from e

        if not stat.S_ISREG(st.st_mode):
            raise SourceUnavailable(f"Source {self.source_path} is not a regular file")

        metadata = FileMetadata.for_size(st.st_size, self.chunk_size)
        logger.debug(
            f"Resolved {self.source_path}: size={metadata.total_size}, "
            f"chunks={metadata.total_chunk_count}"
        )
        return metadata
