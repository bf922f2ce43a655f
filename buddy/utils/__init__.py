"""Utility modules for Buddy."""

from buddy.utils.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
