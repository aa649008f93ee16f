"""Transfer configuration shared by the file server and the file client."""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from common.constants import (
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_SHARD_COUNT,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_MAX_INFLIGHT_WRITES,
    DEFAULT_SOURCE_PATH,
    DEFAULT_DESTINATION_PATH,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
)


class TransferConfig(BaseModel):
    """
    Explicit configuration passed to each component at construction.

    chunk_size is not negotiated on the wire: server and client must be
    started with the same value.
    """
    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE_BYTES, gt=0)
    shard_count: int = Field(default=DEFAULT_SHARD_COUNT, gt=0)
    retry_delay: float = Field(default=DEFAULT_RETRY_DELAY_SECONDS, ge=0)
    max_inflight_writes: int = Field(default=DEFAULT_MAX_INFLIGHT_WRITES, gt=0)
    source_path: str = DEFAULT_SOURCE_PATH
    destination_path: str = DEFAULT_DESTINATION_PATH
    server_host: str = DEFAULT_SERVER_HOST
    server_port: int = Field(default=DEFAULT_SERVER_PORT, ge=0, le=65535)
    tls_cert_path: Optional[str] = None
    tls_key_path: Optional[str] = None

    @property
    def server_address(self) -> str:
        return f"{self.server_host}:{self.server_port}"

    @property
    def tls_enabled(self) -> bool:
        return self.tls_cert_path is not None

    @classmethod
    def from_env(cls, **overrides) -> 'TransferConfig':
        """
        Build configuration from FT_* environment variables.

        Args:
            **overrides: Values that take precedence over the environment

        Returns:
            Validated TransferConfig

        Raises:
            pydantic.ValidationError: If a value is out of range
        """
        env_map = {
            "chunk_size": "FT_CHUNK_SIZE",
            "shard_count": "FT_SHARD_COUNT",
            "retry_delay": "FT_RETRY_DELAY_SECONDS",
            "max_inflight_writes": "FT_MAX_INFLIGHT_WRITES",
            "source_path": "FT_SOURCE_PATH",
            "destination_path": "FT_DESTINATION_PATH",
            "server_host": "FT_SERVER_HOST",
            "server_port": "FT_SERVER_PORT",
            "tls_cert_path": "FT_TLS_CERT_PATH",
            "tls_key_path": "FT_TLS_KEY_PATH",
        }
        values = {}
        for field_name, env_var in env_map.items():
            raw = os.environ.get(env_var)
            if raw:
                values[field_name] = raw
        values.update(overrides)
        return cls(**values)
