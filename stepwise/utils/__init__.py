"""Shared helpers."""

from stepwise.utils.logging import get_logger, setup_logging
from stepwise.utils.text import strip_code_fences, truncate

__all__ = ["get_logger", "setup_logging", "strip_code_fences", "truncate"]
