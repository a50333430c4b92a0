"""
Logging Configuration for the repo-context retrieval engine.

Provides centralized logger setup for the debug trace log.
Stderr output is always attached; a file log is added when
REPO_CONTEXT_LOG_DIR is set.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


def _get_log_directory() -> Optional[Path]:
    """Get the log directory path, or None when file logging is not configured."""
    log_dir = os.getenv("REPO_CONTEXT_LOG_DIR")
    if not log_dir:
        return None
    return Path(log_dir)


# Set REPO_CONTEXT_DEBUG_LOG="" to disable the file log
_debug_log_env = os.getenv("REPO_CONTEXT_DEBUG_LOG")
DEBUG_LOG_ENABLED = _debug_log_env is None or _debug_log_env != ""

_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _stderr_level() -> int:
    level_name = os.getenv("REPO_CONTEXT_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _create_file_handler(log_filename: str) -> Optional[logging.FileHandler]:
    """
    Create a file handler for the specified log file.

    Args:
        log_filename: Name of the log file (e.g., 'debug_trace.log')

    Returns:
        Configured FileHandler, or None if file logging is disabled or unavailable
    """
    if not DEBUG_LOG_ENABLED:
        return None

    log_dir = _get_log_directory()
    if log_dir is None:
        return None

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / log_filename, mode='a', encoding='utf-8')
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        return handler
    except OSError:
        return None


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def _create_stderr_handler() -> logging.StreamHandler:
    """Create a stderr handler for console output with auto-flush."""
    handler = FlushingStreamHandler(sys.stderr)
    handler.setLevel(_stderr_level())
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    return handler


def get_debug_trace_logger() -> logging.Logger:
    """
    Get the debug trace logger shared by all engine modules.

    Output goes to stderr and, when configured, to
    $REPO_CONTEXT_LOG_DIR/debug_trace.log.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("repo_context.debug_trace")

    # Only configure once
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        file_handler = _create_file_handler("debug_trace.log")
        if file_handler:
            logger.addHandler(file_handler)

        logger.addHandler(_create_stderr_handler())

    return logger


debug_trace_logger = get_debug_trace_logger()

_stderr_suppressed = False


def configure_logger_for_debug_trace(logger_name: str) -> logging.Logger:
    """
    Configure a logger to write through the debug trace handlers.

    Args:
        logger_name: Name of the logger to configure (e.g., __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in debug_trace_logger.handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)
    return logger


def is_stderr_suppressed() -> bool:
    """True while the CLI has muted stderr logging."""
    return _stderr_suppressed


def suppress_stderr_logging():
    """
    Suppress stderr logging for the debug trace handlers.

    Call this while rendering rich console output so log lines do not
    interleave with it. File logging continues to work normally.
    """
    global _stderr_suppressed
    for handler in debug_trace_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.CRITICAL + 1)
    _stderr_suppressed = True


def restore_stderr_logging():
    """Restore stderr logging after suppress_stderr_logging()."""
    global _stderr_suppressed
    for handler in debug_trace_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(_stderr_level())
    _stderr_suppressed = False
