"""
concierge/logging_config.py
---------------------------
Process-wide logging for the concierge: one stdout handler on the
`concierge` logger, with every module logger nested beneath it.

Modules call `get_logger(__name__)`. Names outside the package
(`service.api`, `validator.json_validator`, `app`) are re-rooted under
`concierge.` so the API, the CLI and the Streamlit console all share the
same handler and level.

The level comes from LOG_LEVEL (name or number, default INFO):
    DEBUG   — similarity scores per query
    INFO    — cache refreshes, queries, answer status
    WARNING — dropped CMS items, warm-up failures, rejected requests
    ERROR   — collaborator failures reported to the guest as a server error
"""

import logging
import os
import sys
from typing import Optional, Union

_LOG_FORMAT  = "%(asctime)s [%(levelname)-8s] %(name)s — %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_ROOT_NAME   = "concierge"


def resolve_level(value: Optional[Union[str, int]]) -> int:
    """Maps "debug", "WARNING", "10" or 10 to a logging level; INFO otherwise."""
    if isinstance(value, int):
        return value
    value = (value or "").strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Attaches the stdout handler to the `concierge` logger once.

    Args:
        level: Explicit level; falls back to LOG_LEVEL, then INFO. An
               explicit level is applied even after the handler exists.

    Returns:
        The `concierge` logger.
    """
    root = logging.getLogger(_ROOT_NAME)

    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
        root.addHandler(handler)
        root.propagate = False
        root.setLevel(resolve_level(level if level is not None else os.getenv("LOG_LEVEL")))
    elif level is not None:
        root.setLevel(resolve_level(level))
    return root


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    if name != _ROOT_NAME and not name.startswith(_ROOT_NAME + "."):
        name = f"{_ROOT_NAME}.{name}"
    return logging.getLogger(name)
