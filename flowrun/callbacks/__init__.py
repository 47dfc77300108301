"""flowrun.callbacks — lifecycle hooks for observing execution tracking."""

from .base import BaseCallback, FlowrunCallback
from .logging import LoggingCallback

__all__ = ["FlowrunCallback", "BaseCallback", "LoggingCallback"]
