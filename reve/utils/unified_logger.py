"""
Unified logger for all reve components.

One stdout handler on the ``reve`` root logger; module loggers are named
``reve.<area>`` and propagate into it.
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s|%(levelname)-7s|%(short_name)s|%(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

_handler = None


class UnifiedFormatter(logging.Formatter):
    def format(self, record):
        name = record.name
        if name.startswith("reve."):
            name = name[5:]
        if len(name) > 16:
            name = name[:13] + "..."
        record.short_name = name.ljust(16)
        return super().format(record)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach the stdout handler once; ``verbose`` switches the level to DEBUG."""
    global _handler
    reve_logger = logging.getLogger("reve")

    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(UnifiedFormatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        reve_logger.addHandler(_handler)
        reve_logger.propagate = False  # no duplicates via the root logger

    level = logging.DEBUG if verbose else logging.INFO
    reve_logger.setLevel(level)
    _handler.setLevel(level)
    return reve_logger
