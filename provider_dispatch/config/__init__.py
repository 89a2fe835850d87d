"""Configuration management for the dispatch client."""

from .settings import DispatchConfig, get_config, reset_config

__all__ = ["DispatchConfig", "get_config", "reset_config"]
