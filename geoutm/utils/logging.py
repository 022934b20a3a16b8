"""Package logger for geoutm"""

__all__ = ['LOGGER', 'reset_warnings', 'warn_once']

import logging
import threading

LOGGER = logging.getLogger('geoutm')
LOGGER.setLevel(logging.WARNING)
_LOG_HANDLER = logging.StreamHandler()
_LOG_HANDLER.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
LOGGER.addHandler(_LOG_HANDLER)

# Formatted messages already logged by warn_once()
_WARNINGS = set()
_WARNINGS_LOCK = threading.Lock()


def warn_once(msg: str, *args) -> None:
    """
    Logs a warning on the package logger, unless the same formatted message was
    already logged. Batches from several threads can hit the same fallback at
    once; the message still appears a single time.

    Args:
        msg:
            %-style format string

        *args:
            Format arguments

    Returns:
        None
    """
    text = msg % args if args else msg
    with _WARNINGS_LOCK:
        if text in _WARNINGS:
            return

        _WARNINGS.add(text)

    LOGGER.warning(text)


def reset_warnings() -> None:
    """Allows every warn_once() message to be logged again"""
    with _WARNINGS_LOCK:
        _WARNINGS.clear()
