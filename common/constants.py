"""Project-wide defaults (chunk size, shard count, ports, gRPC options)."""

DEFAULT_CHUNK_SIZE_BYTES: int = 1024 * 1024  # 1 MiB, must match on both sides
DEFAULT_SHARD_COUNT: int = 4
DEFAULT_RETRY_DELAY_SECONDS: float = 10.0
DEFAULT_MAX_INFLIGHT_WRITES: int = 16

DEFAULT_SOURCE_PATH: str = "large_file.bin"
DEFAULT_DESTINATION_PATH: str = "downloaded_file.bin"

DEFAULT_SERVER_HOST: str = "localhost"
DEFAULT_SERVER_PORT: int = 50051

FILE_SERVICE_NAME: str = "filetransfer.FileService"

GRPC_KEEPALIVE_TIME_MS: int = 30000
GRPC_KEEPALIVE_TIMEOUT_MS: int = 10000
GRPC_MAX_MESSAGE_BYTES: int = 64 * 1024 * 1024

PROGRESS_REPORT_PERCENT_STEP: int = 10
