"""
Standardized logging for the Sonare backend.

Everything goes to one append-only log file (server.log by default) and,
unless disabled, to stdout with the same format. Uvicorn's loggers propagate
to the root logger, so listener start/stop lines land in the same file.

Usage:
    from shared.logging import setup_logging, get_logger

    # At startup:
    setup_logging('sonare', log_path='server.log')

    # In your code:
    logger = get_logger(__name__)
    logger.info('SERVER START: ...')
    logger.error('Something failed', exc_info=True)

Log format:
    2026-01-16T20:30:00 - INFO - [sonare.server] message
"""

import logging
import os
import sys
from typing import Optional

DEFAULT_LOG_FILE = 'server.log'

LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

# Names already configured in this process
_configured: set[str] = set()


def get_log_path(log_path: Optional[str] = None) -> str:
    """Resolve the log file path.

    Args:
        log_path: Explicit path, or None to use SONARE_LOG_FILE / server.log

    Returns:
        Path to the log file
    """
    if log_path:
        return log_path
    return os.environ.get('SONARE_LOG_FILE', DEFAULT_LOG_FILE)


def setup_logging(
    module: str,
    log_path: Optional[str] = None,
    level: int = logging.INFO,
    also_stdout: bool = True,
) -> logging.Logger:
    """Set up logging for the backend.

    Args:
        module: Name recorded in the initialization line (e.g., 'sonare')
        log_path: Log file path (default: SONARE_LOG_FILE or server.log)
        level: Minimum log level (default: INFO)
        also_stdout: Also log to stdout (default: True)

    Returns:
        The configured root logger
    """
    global _configured

    if module in _configured:
        return logging.getLogger()

    path = get_log_path(log_path)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # A missing log file is not fatal; stdout still works
    try:
        log_file = logging.FileHandler(path, mode='a', encoding='utf-8')
        log_file.setLevel(level)
        log_file.setFormatter(formatter)
        root.addHandler(log_file)
    except OSError as e:
        print(f"Failed to open log file {path}: {e}", file=sys.stderr)

    if also_stdout:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.setFormatter(formatter)
        root.addHandler(console)

    _configured.add(module)

    root.info(f'Logging initialized for {module} ({path})')

    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
