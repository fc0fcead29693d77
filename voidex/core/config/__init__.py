"""Configuration module."""

from voidex.core.config.loader import load_config
from voidex.core.config.schema import Config

__all__ = ["Config", "load_config"]
