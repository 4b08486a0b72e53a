"""Configuration management for buildloop."""

from .loader import ConfigLoader, load_config
from .schema import BuilderSettings

__all__ = ["BuilderSettings", "ConfigLoader", "load_config"]
