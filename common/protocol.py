"""Shared RPC/protocol message definitions (serialization formats)."""

from dataclasses import dataclass
import json
import base64


@dataclass
class FileMetadataRequest:
    """Request message for GetFileMetadata RPC (no fields)."""
    pass

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'FileMetadataRequest':
        """Deserialize from JSON bytes."""
        return cls()


@dataclass
class FileMetadataResponse:
    """Response message for GetFileMetadata RPC."""
    total_size: int
    total_chunks: int

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'total_size': self.total_size,
            'total_chunks': self.total_chunks
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'FileMetadataResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(total_size=obj['total_size'], total_chunks=obj['total_chunks'])


@dataclass
class FileRequest:
    """Request message for GetFileStream RPC."""
    start_chunk: int = 0

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'start_chunk': self.start_chunk}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'FileRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(start_chunk=obj.get('start_chunk', 0))


@dataclass
class FileChunk:
    """A single checksummed chunk of the source file (GetFileStream message)."""
    sequence_number: int
    chunk_data: bytes
    checksum: str
    total_size: int
    total_chunks: int

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'sequence_number': self.sequence_number,
            'chunk_data': base64.b64encode(self.chunk_data).decode('ascii'),
            'checksum': self.checksum,
            'total_size': self.total_size,
            'total_chunks': self.total_chunks
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'FileChunk':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(
            sequence_number=obj['sequence_number'],
            chunk_data=base64.b64decode(obj['chunk_data']),
            checksum=obj['checksum'],
            total_size=obj['total_size'],
            total_chunks=obj['total_chunks']
        )
