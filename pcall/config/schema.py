"""Configuration schema using Pydantic.

Persisted as camelCase JSON at ~/.pcall/config.json; every field can be
overridden from the environment, e.g. ``PCALL_SERVER__PORT=9000``.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings


class ServerConfig(BaseModel):
    """HTTP/WebSocket server configuration."""
    host: str = "127.0.0.1"
    port: int = 8000
    endpoint: str = "/rpc"  # POST target for single and batched calls
    ws_path: str = "/ws"  # socket layer mount point
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class BatchConfig(BaseModel):
    """Client request batching window."""
    max: int = Field(default=10, ge=1)  # flush when this many calls are waiting
    timeout: float = Field(default=0.1, ge=0)  # seconds before a partial window is flushed


class ClientConfig(BaseModel):
    """RPC client defaults."""
    link: Literal["linear", "batch"] = "linear"
    batch: BatchConfig = Field(default_factory=BatchConfig)
    request_timeout: float = 30.0  # seconds, per HTTP round-trip
    log_calls: bool = False


class SocketConfig(BaseModel):
    """Socket layer behaviour."""
    # Drop a channel as soon as its last member leaves. Off by default:
    # channels live until remove_channel()/prune_empty_channels().
    prune_empty_channels: bool = False
    max_message_bytes: int = 1024 * 1024


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: bool = False  # add a rotating file sink under ~/.pcall/logs


ENV_PREFIX = "PCALL_"


class Config(BaseSettings):
    """Root configuration for pcall."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    socket: SocketConfig = Field(default_factory=SocketConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__"
    )
