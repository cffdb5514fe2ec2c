"""Configuration module for memoria."""

from memoria.config.loader import get_config_path, load_config
from memoria.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
