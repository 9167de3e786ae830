"""Environment-backed configuration for the manga downloader service."""

from .config import Config, get_env_value

__all__ = ["Config", "get_env_value"]
