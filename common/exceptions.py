"""Custom exception classes for the transfer protocol."""


class TransferError(Exception):
    """
    Base exception class for all transfer-related errors.
    """
    pass


class FatalTransferError(TransferError):
    """
    Setup or logic failure that ends the transfer outright.
    """
    pass


class RetryableTransferError(TransferError):
    """
    Mid-transfer failure recovered by resuming from the last confirmed chunk.
    """
    pass


class SourceUnavailable(FatalTransferError):
    """
    Raised when the source file cannot be statted or opened.
    """
    pass


class StorageUnavailable(FatalTransferError):
    """
    Raised when the destination file cannot be opened for writing.
    """
    pass


class InvalidResumePoint(FatalTransferError):
    """
    Raised when a requested start chunk lies beyond the end of the source.
    """
    pass


class SourceReadError(RetryableTransferError):
    """
    Raised when reading the source fails in the middle of a stream.
    """
    pass


class StreamAborted(RetryableTransferError):
    """
    Raised when the chunk stream breaks: consumer gone, transport failure
    or an out-of-order sequence number.
    """
    pass


class ChecksumMismatch(RetryableTransferError):
    """
    Raised when a received chunk's payload does not match its checksum.
    """

    def __init__(self, sequence_number: int, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for chunk {sequence_number}: "
            f"expected {expected}, got {actual}"
        )
        self.sequence_number = sequence_number
        self.expected = expected
        self.actual = actual
