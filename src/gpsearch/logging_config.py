"""Console logging for optimization runs."""

import logging
import sys

PACKAGE_LOGGER = "gpsearch"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: int = logging.INFO,
    log_file: str | None = None,
) -> logging.Logger:
    """Attach a stdout handler (and optionally a file handler) once.

    The logger stops propagating to the root logger while it owns a
    handler, otherwise applications with their own root configuration
    would print every line twice. Repeated calls only update the level.

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional file path to write logs

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False

    return logger
