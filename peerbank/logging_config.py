"""Logging setup for PeerBank entry points."""
import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s:%(levelname)s:%(name)s: %(message)s'


def configure_logging(level: str = 'INFO', log_file: Optional[str] = None) -> logging.Logger:
    """Attach a single handler to the ``peerbank`` logger.

    Calling this again replaces the handler instead of stacking a second one.
    """
    logger = logging.getLogger('peerbank')
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        handler = logging.FileHandler(filename=log_file, encoding='utf-8', mode='a')
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
