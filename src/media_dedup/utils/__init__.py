"""Utility functions for configuration and logging."""

from media_dedup.utils.config import Config
from media_dedup.utils.logger import setup_logger

__all__ = ["Config", "setup_logger"]
