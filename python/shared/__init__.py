"""Shared utilities for the Sonare backend."""

from .logging import setup_logging, get_logger, get_log_path, DEFAULT_LOG_FILE

__all__ = ['setup_logging', 'get_logger', 'get_log_path', 'DEFAULT_LOG_FILE']
