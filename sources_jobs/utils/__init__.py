"""
Utilities package initialization.
"""
from .logger import get_logger, log_performance, setup_logging
from .time import utc_now, elapsed_ms, to_record_format

__all__ = ["get_logger", "log_performance", "setup_logging", "utc_now", "elapsed_ms", "to_record_format"]
