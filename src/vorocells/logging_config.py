"""Optional logging setup for hosts that want vorocells output printed.

vorocells never configures logging on import; with ``verbose=True`` the call
summary is emitted at INFO level on the ``vorocells`` logger, which is only
visible once a handler is attached.
"""

from __future__ import annotations

import logging
import sys


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """Configure the ``vorocells`` logger with a stdout handler.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO).
        log_file: Optional path to also write the log to.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger('vorocells')
    logger.setLevel(level)

    # Avoid duplicate lines when called repeatedly.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S',
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
