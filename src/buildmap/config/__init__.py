"""
Configuration loading for the build map pipeline.
"""

from .config_loader import BuildMapConfig, DEFAULT_PLATFORMS

__all__ = ["BuildMapConfig", "DEFAULT_PLATFORMS"]
