"""Logging configuration for the homelabctl package."""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Libraries that are too chatty at INFO
NOISY_LOGGERS = ('urllib3', 'kubernetes')


def setup_logging(debug_mode: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure root logging for a CLI run.

    Args:
        debug_mode: Log at DEBUG instead of INFO
        log_file: Optional path of a rotating log file for the homelabctl logger

    Returns:
        The package logger
    """
    level = logging.DEBUG if debug_mode else logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler()
        ]
    )
    logging.getLogger().setLevel(level)

    if not debug_mode:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger('homelabctl')
    if log_file:
        path = Path(log_file).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        already = any(
            isinstance(h, RotatingFileHandler) and h.baseFilename == str(path)
            for h in logger.handlers
        )
        if not already:
            handler = RotatingFileHandler(
                filename=path,
                maxBytes=10 * 1024 * 1024,
                backupCount=5
            )
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)
            logger.debug(f"Logging to file: {path}")

    return logger
