import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Configure console logging for the backup engine and return its package logger.

    Calling this more than once only updates the level.

    Args:
        log_level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: The ``backup_scheduler`` logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger = logging.getLogger("backup_scheduler")
    logger.setLevel(level)

    if not any(getattr(handler, "_backup_scheduler", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler._backup_scheduler = True
        logger.addHandler(handler)

    return logger
