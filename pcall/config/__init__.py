"""Configuration module for pcall."""

from pcall.config.loader import load_config, save_config, get_config_path
from pcall.config.schema import BatchConfig, ClientConfig, Config, ServerConfig, SocketConfig
from pcall.config.access import get_config, clear_config_cache

__all__ = [
    "Config",
    "ServerConfig",
    "ClientConfig",
    "BatchConfig",
    "SocketConfig",
    "load_config",
    "save_config",
    "get_config_path",
    "get_config",
    "clear_config_cache",
]
