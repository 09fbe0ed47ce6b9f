"""Utility modules."""

from orderflow.utils.logging import TransitionLogger, get_logger, setup_logging

__all__ = ["setup_logging", "get_logger", "TransitionLogger"]
