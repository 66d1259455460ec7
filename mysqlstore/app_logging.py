"""Structured (JSON) log output for services that embed the session store."""

import logging
from typing import Optional

from pythonjsonlogger import jsonlogger

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(threadName)s %(message)s'


def setup_logger(level: int = logging.INFO,
                 name: Optional[str] = None) -> logging.Handler:
    """
    Send records for logger ``name`` (root by default) to stderr as JSON.

    Calling this again for the same logger replaces the JSON handler rather
    than adding a second one.
    """
    target = logging.getLogger(name)
    for existing in list(target.handlers):
        if isinstance(existing.formatter, jsonlogger.JsonFormatter):
            target.removeHandler(existing)
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(
        LOG_FORMAT,
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    ))
    target.addHandler(handler)
    target.setLevel(level)
    return handler
