"""Logging configuration for the ecectl package."""
import logging
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str, level: int = logging.INFO, stream=None) -> logging.Logger:
    """
    Attach a console handler to the named logger.

    Command output goes to stdout, so log records default to stderr.
    Calling this again only adjusts the level.

    Args:
        name: The name of the logger
        level: The logging level (default: logging.INFO)
        stream: Stream for the handler (default: sys.stderr)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger


def setup_logging(debug_mode: bool = False, level_name: str = "INFO") -> logging.Logger:
    """Configure the ``ecectl`` logger tree for command-line use."""
    if debug_mode:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(level_name.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger = setup_logger("ecectl", level)

    # Request-level chatter from urllib3 only in debug mode
    logging.getLogger('urllib3').setLevel(logging.DEBUG if debug_mode else logging.WARNING)
    return logger
