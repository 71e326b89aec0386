import logging

from comicshelf import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = None) -> None:
    """Attach one stream handler to the ``comicshelf`` logger (idempotent)."""
    logger = logging.getLogger("comicshelf")
    logger.setLevel((level or config.LOG_LEVEL).upper())
    # Only add handler if not already added (both apps may run in one process)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
