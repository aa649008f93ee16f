"""Provides SHA-256 checksum calculation and verification helpers."""

import hashlib


def compute_checksum(data: bytes) -> str:
    """
    Compute SHA-256 checksum for given data.
    
    Args:
        data: Bytes to compute checksum for
        
    Returns:
        Hexadecimal string representation of SHA-256 hash
    """
    return hashlib.sha256(data).hexdigest()


def verify_checksum(data: bytes, expected: str) -> bool:
    """
    Verify that data matches expected checksum.
    
    Args:
        data: Bytes to verify
        expected: Expected SHA-256 checksum (hex string)
        
    Returns:
        True if checksum matches, False otherwise
    """
    return compute_checksum(data) == expected


def compute_file_checksum(path, piece_size: int = 1024 * 1024) -> str:
    """
    Compute SHA-256 checksum of a whole file, reading it piece by piece.

    Args:
        path: File to hash
        piece_size: Read size in bytes

    Returns:
        Hexadecimal string representation of SHA-256 hash
    """
    hasher = hashlib.sha256()
    with open(path, 'rb') as f:
        while True:
            piece = f.read(piece_size)
            if not piece:
                break
            hasher.update(piece)
    return hasher.hexdigest()
