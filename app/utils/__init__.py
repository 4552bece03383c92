"""
Utility modules for the campus context engine.
"""
from .logging_config import setup_logging, get_logger, log_performance, LogContext

__all__ = ['setup_logging', 'get_logger', 'log_performance', 'LogContext']
